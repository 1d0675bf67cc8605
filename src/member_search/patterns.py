import re
from dataclasses import dataclass
from typing import Iterable, List, Union

from member_search.exceptions import InvalidPath, InvalidPattern, InvalidRequest

QSYS_ROOT = "/QSYS.LIB"
ALL_LIBRARIES_PATH = f"{QSYS_ROOT}/*.LIB"
ALL_LIBRARIES_TOKENS = ("*ALL", "ALL", "*")
WILDCARD = "*"

# IBM i object names, optionally ending in a generic *
NAME_RE = re.compile(r"^(?:[A-Z0-9$#@_.]+\*?|\*)$")

MEMBER_PATH_RE = re.compile(
    r"^/QSYS\.LIB/([^/]+)\.LIB/([^/]+)\.FILE/([^/]+)\.MBR$", re.IGNORECASE
)


@dataclass(frozen=True)
class MemberPath:
    library: str
    file: str
    member: str

    @property
    def path(self) -> str:
        return build_member_path(self.library, self.file, self.member)

    @property
    def pattern(self) -> str:
        """The library/file/member pattern that resolves back to this path."""
        return f"{self.library}/{self.file}/{self.member}"


def split_patterns(raw: Union[str, Iterable[str]]) -> List[str]:
    """
    Split one or more comma-separated pattern strings into trimmed, non-empty
    patterns. Order and duplicates are kept.
    """
    if isinstance(raw, str):
        raw = [raw]

    patterns = []
    for chunk in raw:
        if chunk is None:
            continue
        patterns.extend(p.strip() for p in chunk.split(",") if p.strip())

    if not patterns:
        raise InvalidRequest("At least one library pattern must be provided")
    return patterns


def _check_segment(segment: str, pattern: str) -> str:
    if not segment:
        raise InvalidPattern(f"Empty name in pattern: {pattern!r}")
    if WILDCARD in segment[:-1]:
        raise InvalidPattern(
            f"Wildcards are only allowed at the end of a name: {pattern!r}"
        )
    segment = segment.upper()
    if not NAME_RE.match(segment):
        raise InvalidPattern(f"Invalid character in name {segment!r}: {pattern!r}")
    return segment


def resolve_resource_path(pattern: str) -> str:
    """
    Map a LIB, LIB/FILE or LIB/FILE/MEMBER pattern to the QSYS path searched by
    pfgrep. *ALL, ALL and a bare * search every library.

    >>> resolve_resource_path("acme/qrpglesrc/pgm*")
    '/QSYS.LIB/ACME.LIB/QRPGLESRC.FILE/PGM*.MBR'
    """
    pattern = pattern.strip()
    if pattern.upper() in ALL_LIBRARIES_TOKENS:
        return ALL_LIBRARIES_PATH

    parts = pattern.split("/")
    if len(parts) > 3:
        raise InvalidPattern(
            f"Expected LIBRARY, LIBRARY/FILE or LIBRARY/FILE/MEMBER: {pattern!r}"
        )

    names = [_check_segment(part.strip(), pattern) for part in parts]
    path = f"{QSYS_ROOT}/{names[0]}.LIB"
    if len(names) > 1:
        path += f"/{names[1]}.FILE"
    if len(names) > 2:
        # A bare * member means every member of the file
        path += f"/{names[2]}.MBR"
    return path


def parse_resource_path(path: str) -> MemberPath:
    match = MEMBER_PATH_RE.match(path.strip())
    if not match:
        raise InvalidPath(f"Invalid member path format: {path}")

    library, file, member = match.groups()
    return MemberPath(library.upper(), file.upper(), member.upper())


def build_member_path(library: str, file: str, member: str) -> str:
    return f"{QSYS_ROOT}/{library.upper()}.LIB/{file.upper()}.FILE/{member.upper()}.MBR"


def member_label(path: str) -> str:
    """Member name for display, e.g. PGM1 for .../QRPGLESRC.FILE/PGM1.MBR."""
    try:
        return parse_resource_path(path).member
    except InvalidPath:
        return path
