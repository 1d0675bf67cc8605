"""Search IBM i source members with pfgrep over a remote command channel."""

from member_search.config import SearchSettings
from member_search.executor import Environment, RemoteExecutor, SshExecutor, ToolOutput
from member_search.orchestrator import SearchOrchestrator
from member_search.schemas import Hit, HitLine, PatternError, SearchRequest, SearchResult

__all__ = [
    "Environment",
    "Hit",
    "HitLine",
    "PatternError",
    "RemoteExecutor",
    "SearchOrchestrator",
    "SearchRequest",
    "SearchResult",
    "SearchSettings",
    "SshExecutor",
    "ToolOutput",
]
