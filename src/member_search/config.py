import os
from dataclasses import dataclass
from logging import getLogger

from dotenv import load_dotenv

load_dotenv()

logger = getLogger(__name__)

DEFAULT_PFGREP_PATH = "/QOpenSys/pkgs/bin/pfgrep"
DEFAULT_MAX_PARALLEL_SEARCHES = 4
DEFAULT_MAX_MATCHES = 5000
DEFAULT_TIMEOUT = 300.0
MAX_AFTER_CONTEXT = 50


TRUE_VALUES = ("1", "true", "yes")


def _get_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if not value:
        return default
    return value.strip().lower() in TRUE_VALUES


def _get_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer in environment variable {key}: {value}")
        return default


def _get_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number in environment variable {key}: {value}")
        return default


@dataclass
class SearchSettings:
    """
    Read-only settings for searching. Option defaults are applied to requests
    that leave the corresponding field unset.
    """

    host: str = ""
    user: str = ""
    port: int = 22
    ssh_path: str = "ssh"
    pfgrep_path: str = DEFAULT_PFGREP_PATH
    max_parallel_searches: int = DEFAULT_MAX_PARALLEL_SEARCHES
    max_matches: int = DEFAULT_MAX_MATCHES
    timeout: float = DEFAULT_TIMEOUT
    case_sensitive: bool = False
    use_regex: bool = False
    after_context: int = 0
    default_libraries: str = ""

    def __post_init__(self):
        if self.max_parallel_searches < 1:
            logger.warning(
                f"max_parallel_searches={self.max_parallel_searches} is below 1, using 1"
            )
            self.max_parallel_searches = 1

    @classmethod
    def from_env(cls) -> "SearchSettings":
        return cls(
            host=os.getenv("MEMBER_SEARCH_HOST", ""),
            user=os.getenv("MEMBER_SEARCH_USER", ""),
            port=_get_int("MEMBER_SEARCH_PORT", 22),
            ssh_path=os.getenv("MEMBER_SEARCH_SSH_PATH", "ssh"),
            pfgrep_path=os.getenv("MEMBER_SEARCH_PFGREP_PATH", DEFAULT_PFGREP_PATH),
            max_parallel_searches=_get_int(
                "MEMBER_SEARCH_MAX_PARALLEL", DEFAULT_MAX_PARALLEL_SEARCHES
            ),
            max_matches=_get_int("MEMBER_SEARCH_MAX_MATCHES", DEFAULT_MAX_MATCHES),
            timeout=_get_float("MEMBER_SEARCH_TIMEOUT", DEFAULT_TIMEOUT),
            case_sensitive=_get_bool("MEMBER_SEARCH_CASE_SENSITIVE", False),
            use_regex=_get_bool("MEMBER_SEARCH_USE_REGEX", False),
            after_context=_get_int("MEMBER_SEARCH_AFTER_CONTEXT", 0),
            default_libraries=os.getenv("MEMBER_SEARCH_DEFAULT_LIBRARIES", ""),
        )
