import enum


class ErrorKind(str, enum.Enum):
    permission_denied = "permission_denied"
    resource_not_found = "resource_not_found"
    tool_failure = "tool_failure"
    connection_lost = "connection_lost"


class MemberSearchError(Exception):
    """Base class for every error raised by member_search."""


class InvalidRequest(MemberSearchError):
    """The search request failed validation before anything was dispatched."""


class InvalidPattern(MemberSearchError):
    """A library/file/member pattern has a malformed shape or wildcard."""


class InvalidPath(MemberSearchError):
    """A resource path is not a /QSYS.LIB/<LIB>.LIB/<FILE>.FILE/<MBR>.MBR path."""


class Cancelled(MemberSearchError):
    """A pattern execution was cancelled while it was in flight."""


class PatternFailure(MemberSearchError):
    """
    A single pattern failed. These are collected on the search result as
    PatternError entries and never abort sibling patterns.
    """

    kind = ErrorKind.tool_failure


class PermissionDenied(PatternFailure):
    kind = ErrorKind.permission_denied


class ResourceNotFound(PatternFailure):
    kind = ErrorKind.resource_not_found


class ToolFailure(PatternFailure):
    kind = ErrorKind.tool_failure


class ConnectionLost(PatternFailure):
    kind = ErrorKind.connection_lost
