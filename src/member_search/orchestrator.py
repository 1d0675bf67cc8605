import asyncio
import inspect
import itertools
import uuid
from logging import getLogger
from typing import Any, Callable, Dict, List, Optional, Set

from member_search.command import CommandSpec, build_command
from member_search.config import SearchSettings
from member_search.exceptions import (
    Cancelled,
    PatternFailure,
    PermissionDenied,
    ResourceNotFound,
    ToolFailure,
)
from member_search.executor import Environment, RemoteExecutor, ToolOutput
from member_search.parser import ParsedOutput, parse_output
from member_search.schemas import (
    Hit,
    PatternError,
    SearchOptions,
    SearchRequest,
    SearchResult,
    normalize_request,
)

logger = getLogger(__name__)

# pfgrep exit codes: 0 = matches found, 1 = no matches, anything else failed
EXIT_MATCHES = 0
EXIT_NO_MATCHES = 1

ProgressCallback = Callable[[int, int, SearchResult], Any]


class CancellationScope:
    """
    Cooperative cancellation for one search (the umbrella scope) or one
    pattern execution (a child scope). Cancelling a scope cancels its
    children and any task attached to it.
    """

    def __init__(self, parent: Optional["CancellationScope"] = None) -> None:
        self.parent = parent
        self._cancelled = False
        self._children: Set["CancellationScope"] = set()
        self._task: Optional[asyncio.Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def child(self) -> "CancellationScope":
        scope = CancellationScope(parent=self)
        if self._cancelled:
            scope._cancelled = True
        self._children.add(scope)
        return scope

    def attach(self, task: asyncio.Future) -> None:
        self._task = task
        if self._cancelled:
            task.cancel()

    def close(self) -> None:
        self._task = None
        if self.parent is not None:
            self.parent._children.discard(self)

    def cancel(self) -> None:
        self._cancelled = True
        for child in list(self._children):
            child.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()


def check_tool_output(output: ToolOutput) -> None:
    """
    Raise the PatternFailure matching a failed pfgrep run. Matching on stderr
    text is best effort; anything unrecognized is a ToolFailure.
    """
    if output.exit_code in (EXIT_MATCHES, EXIT_NO_MATCHES):
        return

    stderr = output.stderr or ""
    if "Permission denied" in stderr:
        raise PermissionDenied("Don't have authority to that library")
    if "No such file or directory" in stderr:
        raise ResourceNotFound("Library does not exist or is not accessible")
    raise ToolFailure(stderr.strip() or f"pfgrep failed with exit code {output.exit_code}")


class _SearchState:
    """Running hits and errors for one search, mutated only on the event loop."""

    def __init__(self, search_id: str, options: SearchOptions, total: int) -> None:
        self.search_id = search_id
        self.options = options
        self.total = total
        self.completed = 0
        self.hits: Dict[str, Hit] = {}
        self.errors: List[PatternError] = []
        self.truncated_patterns: List[str] = []
        self.cancelled = False

    def add_hits(self, hits: List[Hit]) -> None:
        for hit in hits:
            existing = self.hits.get(hit.resource_path)
            if existing is None:
                self.hits[hit.resource_path] = hit.model_copy(deep=True)
            else:
                existing.merge(hit)

    def add_error(self, pattern: str, error: PatternFailure) -> None:
        self.errors.append(PatternError(pattern=pattern, kind=error.kind, message=str(error)))

    def to_result(self) -> SearchResult:
        hits = sorted(self.hits.values(), key=lambda hit: hit.resource_path)
        return SearchResult(
            search_id=self.search_id,
            term=self.options.search_term,
            hits=[hit.model_copy(deep=True) for hit in hits],
            options=self.options.model_copy(deep=True),
            errors=list(self.errors),
            truncated=bool(self.truncated_patterns),
            truncated_patterns=list(self.truncated_patterns),
            cancelled=self.cancelled,
            patterns_total=self.total,
            patterns_completed=self.completed,
        )


class SearchOrchestrator:
    """
    Runs a search request as one pfgrep command per pattern, at most
    `max_parallel_searches` at a time, and folds the output into a single
    SearchResult.
    """

    def __init__(self, executor: RemoteExecutor, settings: Optional[SearchSettings] = None) -> None:
        self.executor = executor
        self.settings = settings or SearchSettings()
        self._searches: Dict[str, CancellationScope] = {}

    @property
    def max_parallel(self) -> int:
        return self.settings.max_parallel_searches

    async def execute(
        self,
        request: SearchRequest,
        search_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> SearchResult:
        # Validate everything before dispatching anything
        options = normalize_request(request, self.settings)
        commands = [
            build_command(pattern, options, self.settings.pfgrep_path)
            for pattern in options.patterns
        ]

        search_id = search_id or f"search_{uuid.uuid4().hex}"
        if search_id in self._searches:
            raise ValueError(f"Search {search_id} is already running")

        umbrella = CancellationScope()
        self._searches[search_id] = umbrella
        state = _SearchState(search_id, options, total=len(commands))
        logger.info(
            f"Search {search_id}: {options.search_term!r} across {len(commands)} pattern(s)"
        )

        try:
            for batch in itertools.batched(commands, self.max_parallel):
                if umbrella.cancelled:
                    logger.info(f"Search {search_id} cancelled, skipping remaining patterns")
                    break

                async with asyncio.TaskGroup() as tg:
                    for spec in batch:
                        tg.create_task(
                            self._run_pattern(spec, umbrella.child(), state, on_progress)
                        )
        finally:
            self._searches.pop(search_id, None)

        state.cancelled = umbrella.cancelled
        result = state.to_result()
        logger.info(
            f"Search {search_id} finished: {len(result.hits)} members, "
            f"{result.total_hits} hits, {len(result.errors)} failed pattern(s)"
        )
        return result

    async def _run_pattern(
        self,
        spec: CommandSpec,
        scope: CancellationScope,
        state: _SearchState,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        call = asyncio.ensure_future(self.executor.send(spec.command_line, Environment.pase))
        scope.attach(call)
        try:
            # asyncio.wait never raises for the call itself, so a cancelled
            # call is told apart from this task being cancelled.
            await asyncio.wait({call})
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            scope.close()

        try:
            if call.cancelled() or scope.cancelled:
                raise Cancelled(f"Search of {spec.pattern} cancelled")
            output = call.result()
            check_tool_output(output)
            parsed: ParsedOutput = parse_output(output.stdout)
        except Cancelled:
            logger.info(f"Pattern {spec.pattern} cancelled")
        except PatternFailure as e:
            logger.warning(f"Pattern {spec.pattern} failed ({e.kind.value}): {e}")
            state.add_error(spec.pattern, e)
        except Exception as e:
            logger.exception(f"Unexpected error searching {spec.pattern}")
            state.add_error(spec.pattern, ToolFailure(str(e) or type(e).__name__))
        else:
            state.add_hits(parsed.hits)
            if parsed.match_count >= state.options.max_matches:
                logger.warning(
                    f"Pattern {spec.pattern} reached the {state.options.max_matches} match limit"
                )
                state.truncated_patterns.append(spec.pattern)

        state.completed += 1
        if on_progress is not None:
            try:
                progress = on_progress(state.completed, state.total, state.to_result())
                if inspect.isawaitable(progress):
                    await progress
            except Exception:
                logger.exception(f"Progress callback failed for search {state.search_id}")

    def cancel(self, search_id: str) -> bool:
        scope = self._searches.get(search_id)
        if scope is None:
            return False
        logger.info(f"Cancelling search {search_id}")
        scope.cancel()
        return True

    def cancel_all(self) -> int:
        search_ids = list(self._searches)
        for search_id in search_ids:
            self.cancel(search_id)
        return len(search_ids)

    def active_search_ids(self) -> List[str]:
        return list(self._searches)

    def has_active_searches(self) -> bool:
        return bool(self._searches)
