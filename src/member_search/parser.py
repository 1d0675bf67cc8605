import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import Dict, List

from member_search.schemas import Hit, HitLine

logger = getLogger(__name__)

SEPARATOR = "--"

# <path>:<line>:<content> for matches, <path>-<line>-<content> for context
# lines. The path is matched lazily so a separator inside the content is never
# taken for the one after the path.
OUTPUT_LINE_RE = re.compile(r"^(?P<path>[^:]+?)(?P<sep>[:-])(?P<number>\d+)(?P=sep)(?P<content>.*)$")


@dataclass
class ParsedOutput:
    hits: List[Hit] = field(default_factory=list)
    match_count: int = 0


def parse_output(stdout: str) -> ParsedOutput:
    """
    Parse pfgrep output into hits, one per resource path, in first-seen order.
    Lines that are neither match nor context lines are skipped.
    """
    parsed = ParsedOutput()
    hits_by_path: Dict[str, Hit] = {}

    for line in stdout.splitlines():
        if not line.strip() or line.strip() == SEPARATOR:
            continue

        match = OUTPUT_LINE_RE.match(line)
        if match is None:
            logger.debug(f"Skipping unrecognized output line: {line!r}")
            continue

        path = match.group("path")
        is_context = match.group("sep") == "-"
        line_number = int(match.group("number"))
        if line_number < 1:
            logger.debug(f"Skipping output line with line number 0: {line!r}")
            continue

        hit = hits_by_path.get(path)
        if hit is None:
            # A context line can show up before any match for its path when
            # the output was truncated; keep it rather than drop it.
            hit = Hit.for_path(path)
            hits_by_path[path] = hit
            parsed.hits.append(hit)

        hit.lines.append(
            HitLine(
                line_number=line_number,
                content=match.group("content").strip(),
                is_context=is_context,
            )
        )
        if not is_context:
            parsed.match_count += 1

    # Truncated output can interleave lines; keep each hit in line order
    for hit in parsed.hits:
        hit.lines.sort(key=lambda line: line.line_number)

    return parsed
