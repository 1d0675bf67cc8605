import re
from datetime import UTC, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from member_search.config import MAX_AFTER_CONTEXT, SearchSettings
from member_search.exceptions import ErrorKind, InvalidRequest
from member_search.patterns import member_label, split_patterns


class SearchRequest(BaseModel):
    search_term: str
    patterns: List[str]
    case_sensitive: Optional[bool] = None
    use_regex: Optional[bool] = None
    after_context: Optional[int] = None


class SearchOptions(BaseModel):
    search_term: str
    patterns: List[str]
    case_sensitive: bool
    use_regex: bool
    after_context: int
    max_matches: int


class HitLine(BaseModel):
    line_number: int = Field(gt=0)
    content: str
    is_context: bool = False


class Hit(BaseModel):
    resource_path: str
    lines: List[HitLine] = Field(default_factory=list)
    label: str = ""

    @classmethod
    def for_path(cls, resource_path: str) -> "Hit":
        return cls(resource_path=resource_path, label=member_label(resource_path))

    @property
    def match_count(self) -> int:
        return sum(1 for line in self.lines if not line.is_context)

    def merge(self, other: "Hit") -> None:
        """
        Add the lines of another hit for the same path. Lines are keyed by line
        number; a match line wins over a context line for the same number.
        """
        by_number = {line.line_number: line for line in self.lines}
        for line in other.lines:
            existing = by_number.get(line.line_number)
            if existing is None or (existing.is_context and not line.is_context):
                by_number[line.line_number] = line.model_copy()
        self.lines = [by_number[n] for n in sorted(by_number)]


class PatternError(BaseModel):
    pattern: str
    kind: ErrorKind
    message: str


class SearchResult(BaseModel):
    search_id: str
    term: str
    hits: List[Hit] = Field(default_factory=list)
    options: SearchOptions
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    errors: List[PatternError] = Field(default_factory=list)
    truncated: bool = False
    truncated_patterns: List[str] = Field(default_factory=list)
    cancelled: bool = False
    patterns_total: int = 0
    patterns_completed: int = 0

    @property
    def total_hits(self) -> int:
        return sum(hit.match_count for hit in self.hits)

    @property
    def total_lines(self) -> int:
        return sum(len(hit.lines) for hit in self.hits)

    def error_summary(self) -> Optional[str]:
        if not self.errors:
            return None
        if len(self.errors) == 1:
            error = self.errors[0]
            return f"Search of {error.pattern} failed: {error.message}"
        return f"{len(self.errors)} patterns failed"


def normalize_request(request: SearchRequest, settings: SearchSettings) -> SearchOptions:
    """
    Validate a request and resolve every unset option from the settings.

    Raises InvalidRequest for an empty term, no patterns, an after-context
    count outside 0..50, or a regex term that does not compile.
    """
    term = request.search_term
    if not term or not term.strip():
        raise InvalidRequest("Search term must not be empty")

    patterns = split_patterns(request.patterns)

    after_context = (
        request.after_context
        if request.after_context is not None
        else settings.after_context
    )
    if not 0 <= after_context <= MAX_AFTER_CONTEXT:
        raise InvalidRequest(
            f"After context must be between 0 and {MAX_AFTER_CONTEXT}, got {after_context}"
        )

    use_regex = request.use_regex if request.use_regex is not None else settings.use_regex
    if use_regex:
        try:
            re.compile(term)
        except re.error as e:
            raise InvalidRequest(f"Invalid regular expression {term!r}: {e}") from e

    case_sensitive = (
        request.case_sensitive
        if request.case_sensitive is not None
        else settings.case_sensitive
    )

    return SearchOptions(
        search_term=term,
        patterns=patterns,
        case_sensitive=case_sensitive,
        use_regex=use_regex,
        after_context=after_context,
        max_matches=settings.max_matches,
    )
