from dataclasses import dataclass
from typing import Tuple

from member_search.patterns import resolve_resource_path
from member_search.schemas import SearchOptions


@dataclass(frozen=True)
class CommandSpec:
    pattern: str
    executable: str
    flags: Tuple[str, ...]
    escaped_term: str
    resource_path: str

    @property
    def command_line(self) -> str:
        return " ".join(
            [self.executable, *self.flags, self.escaped_term, escape_path(self.resource_path)]
        )


def quote_argument(text: str) -> str:
    """Single-quote text for a POSIX shell, closing and reopening around each '."""
    return "'" + text.replace("'", "'\"'\"'") + "'"


def escape_path(path: str) -> str:
    """
    Escape $ in a resolved resource path so the shell passes it through. The
    path is left otherwise unquoted so a trailing * still globs.
    """
    return path.replace("$", "\\$")


def build_flags(options: SearchOptions) -> Tuple[str, ...]:
    flags = []

    # pfgrep is case sensitive unless told otherwise
    if not options.case_sensitive:
        flags.append("-i")

    # Fixed-string search unless a regex was asked for
    if not options.use_regex:
        flags.append("-F")

    # Recursion, line numbers and filenames are always on; the parser needs them
    flags.append("-r")
    flags.append("-n")
    flags.append("-H")

    flags.append(f"-m {options.max_matches}")

    # pfgrep only supports after-context, not before-context
    if options.after_context > 0:
        flags.append(f"-A {options.after_context}")

    return tuple(flags)


def build_command(pattern: str, options: SearchOptions, executable: str) -> CommandSpec:
    return CommandSpec(
        pattern=pattern,
        executable=executable,
        flags=build_flags(options),
        escaped_term=quote_argument(options.search_term),
        resource_path=resolve_resource_path(pattern),
    )
