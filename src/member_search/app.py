"""
Run the MCP server with:
    $ fastmcp run src/member_search/app.py:mcp
"""
import logging
from contextlib import asynccontextmanager
from logging import getLogger
from typing import Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from member_search.config import SearchSettings
from member_search.executor import SshExecutor
from member_search.orchestrator import SearchOrchestrator
from member_search.schemas import SearchRequest, SearchResult

load_dotenv()

logger = getLogger(__name__)
logging.basicConfig(level=logging.INFO)

orchestrator = None


def init_orchestrator(settings: SearchSettings = None) -> SearchOrchestrator:
    global orchestrator
    settings = settings or SearchSettings.from_env()
    orchestrator = SearchOrchestrator(SshExecutor.from_settings(settings), settings)
    logger.info(f"Searching {settings.host} with {settings.pfgrep_path}")
    return orchestrator


def get_orchestrator() -> SearchOrchestrator:
    if orchestrator is None:
        raise RuntimeError("Search orchestrator is not initialized")
    return orchestrator


@asynccontextmanager
async def lifespan(app: FastMCP):
    init_orchestrator()
    try:
        yield
    finally:
        get_orchestrator().cancel_all()


mcp = FastMCP("IBM i member search MCP server", lifespan=lifespan)


async def run_member_search(
    request: SearchRequest, search_id: Optional[str] = None
) -> SearchResult:
    return await get_orchestrator().execute(request, search_id=search_id)


def cancel_member_search(search_id: str) -> bool:
    return get_orchestrator().cancel(search_id)


@mcp.tool()
async def member_search(
    request: SearchRequest, search_id: Optional[str] = None
) -> SearchResult:
    """
    Search IBM i source members with pfgrep. Patterns are LIBRARY,
    LIBRARY/FILE or LIBRARY/FILE/MEMBER, comma-separated, with * allowed at
    the end of a name; *ALL searches every library. Pass a search_id to be able
    to cancel the search with cancel_search while it runs.
    """
    return await run_member_search(request, search_id)


@mcp.tool()
def cancel_search(search_id: str) -> bool:
    """Cancel a running search. Returns False if no such search is running."""
    return cancel_member_search(search_id)
