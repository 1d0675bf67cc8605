import asyncio
import logging
from functools import wraps
from logging import getLogger

import click
from dotenv import load_dotenv

from member_search.config import MAX_AFTER_CONTEXT, SearchSettings
from member_search.exceptions import MemberSearchError
from member_search.executor import SshExecutor
from member_search.export import export_results
from member_search.orchestrator import SearchOrchestrator
from member_search.schemas import SearchRequest, SearchResult

load_dotenv()

logger = getLogger(__name__)


def async_command(f):
    """Wrapper necessary because Click doesn't support async"""

    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))

    return wrapper


def print_results(result: SearchResult) -> None:
    for hit in result.hits:
        click.secho(hit.resource_path, bold=True)
        for line in hit.lines:
            marker = "-" if line.is_context else ":"
            click.echo(f"  {line.line_number}{marker} {line.content}")

    click.echo(
        f"Found {result.total_hits} hits in {len(result.hits)} members "
        f"({result.patterns_completed}/{result.patterns_total} patterns searched)"
    )
    if result.truncated:
        click.secho(
            f"Showing {result.options.max_matches} matches. There may be more "
            "results. Try refining your search.",
            fg="yellow",
        )
    if result.cancelled:
        click.secho("Search cancelled", fg="yellow")

    summary = result.error_summary()
    if summary:
        click.secho(summary, fg="red", err=True)
        if len(result.errors) > 1:
            for error in result.errors:
                click.echo(f"  {error.pattern}: {error.message}", err=True)


@click.command()
@click.argument("term")
@click.option(
    "--libraries",
    "-l",
    multiple=True,
    help="Comma-separated LIBRARY, LIBRARY/FILE or LIBRARY/FILE/MEMBER patterns "
    "(default: MEMBER_SEARCH_DEFAULT_LIBRARIES)",
)
@click.option("--case-sensitive/--ignore-case", default=None, help="Match case exactly")
@click.option("--regex/--fixed-string", default=None, help="Treat TERM as a regular expression")
@click.option(
    "--after-context",
    "-A",
    type=click.IntRange(0, MAX_AFTER_CONTEXT),
    default=None,
    help="Lines of context to show after each match",
)
@click.option("--max-parallel", type=click.IntRange(min=1), default=None, help="Patterns searched at once")
@click.option("--host", default=None, help="IBM i host (default: MEMBER_SEARCH_HOST)")
@click.option("--user", default=None, help="User profile (default: MEMBER_SEARCH_USER)")
@click.option("--port", type=int, default=None, help="SSH port (default: MEMBER_SEARCH_PORT)")
@click.option("--export", "export_path", type=click.Path(dir_okay=False), help="Write the results to a text file")
@async_command
async def main(
    term: str,
    libraries: tuple[str, ...] = (),
    case_sensitive: bool = None,
    regex: bool = None,
    after_context: int = None,
    max_parallel: int = None,
    host: str = None,
    user: str = None,
    port: int = None,
    export_path: str = None,
):
    """
    Search IBM i source members for TERM with pfgrep.
    """
    logging.basicConfig(level=logging.INFO)

    settings = SearchSettings.from_env()
    if max_parallel is not None:
        settings.max_parallel_searches = max_parallel
    if host is not None:
        settings.host = host
    if user is not None:
        settings.user = user
    if port is not None:
        settings.port = port

    patterns = list(libraries) or [settings.default_libraries]

    try:
        executor = SshExecutor.from_settings(settings)
    except ValueError as e:
        raise click.UsageError(f"{e}; pass --host or set it in the environment")

    orchestrator = SearchOrchestrator(executor, settings)
    request = SearchRequest(
        search_term=term,
        patterns=patterns,
        case_sensitive=case_sensitive,
        use_regex=regex,
        after_context=after_context,
    )

    def report_progress(completed: int, total: int, snapshot: SearchResult) -> None:
        logger.info(f"Searched {completed}/{total} patterns, {snapshot.total_hits} hits so far")

    try:
        result = await orchestrator.execute(request, on_progress=report_progress)
    except MemberSearchError as e:
        raise click.ClickException(str(e))
    except asyncio.CancelledError:
        orchestrator.cancel_all()
        raise

    print_results(result)

    if export_path:
        await export_results(result, export_path)
        click.echo(f"Results exported to {export_path}")
