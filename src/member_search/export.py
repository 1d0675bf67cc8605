from collections import defaultdict
from typing import Dict, List

import aiofiles

from member_search.exceptions import InvalidPath
from member_search.patterns import parse_resource_path
from member_search.schemas import Hit, SearchResult

UNKNOWN_LIBRARY = "Unknown"


def group_hits_by_library(result: SearchResult) -> Dict[str, List[Hit]]:
    groups = defaultdict(list)
    for hit in result.hits:
        try:
            library = parse_resource_path(hit.resource_path).library
        except InvalidPath:
            library = UNKNOWN_LIBRARY
        groups[library].append(hit)
    return dict(groups)


def describe_options(result: SearchResult) -> str:
    options = result.options
    described = [
        "Case Sensitive" if options.case_sensitive else "Case Insensitive",
        "Regex" if options.use_regex else "Fixed String",
    ]
    if options.after_context:
        described.append(f"{options.after_context} Lines After")
    return ", ".join(described)


def format_results_as_text(result: SearchResult) -> str:
    """Render a search result as a plain-text report grouped by library."""
    lines = [
        "IBM i Member Search Results",
        f'Search Term: "{result.term}"',
        f"Patterns: {', '.join(result.options.patterns)}",
        f"Options: {describe_options(result)}",
        f"Generated: {result.timestamp.isoformat()}",
        f"Total Hits: {result.total_hits} in {len(result.hits)} members",
    ]
    if result.truncated:
        lines.append(
            f"Showing {result.options.max_matches} matches for "
            f"{', '.join(result.truncated_patterns)}. There may be more results."
        )
    for error in result.errors:
        lines.append(f"Failed: {error.pattern}: {error.message}")
    lines.extend(["=" * 50, ""])

    for library, hits in group_hits_by_library(result).items():
        lines.append(f"Library: {library}")
        lines.append("-" * 20)
        for hit in hits:
            try:
                member_path = parse_resource_path(hit.resource_path)
                name = f"{member_path.file}/{member_path.member}"
            except InvalidPath:
                name = hit.resource_path
            lines.append(f"{name} ({hit.match_count} hits)")
            for line in hit.lines:
                marker = "-" if line.is_context else ":"
                lines.append(f"  Line {line.line_number}{marker} {line.content}")
            lines.append("")
        lines.append("")

    return "\n".join(lines)


async def export_results(result: SearchResult, path: str) -> None:
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(format_results_as_text(result))
