import pytest

from member_search.config import (
    DEFAULT_MAX_MATCHES,
    DEFAULT_MAX_PARALLEL_SEARCHES,
    DEFAULT_PFGREP_PATH,
    SearchSettings,
)

ENV_VARS = [
    "MEMBER_SEARCH_HOST",
    "MEMBER_SEARCH_USER",
    "MEMBER_SEARCH_PORT",
    "MEMBER_SEARCH_SSH_PATH",
    "MEMBER_SEARCH_PFGREP_PATH",
    "MEMBER_SEARCH_MAX_PARALLEL",
    "MEMBER_SEARCH_MAX_MATCHES",
    "MEMBER_SEARCH_TIMEOUT",
    "MEMBER_SEARCH_CASE_SENSITIVE",
    "MEMBER_SEARCH_USE_REGEX",
    "MEMBER_SEARCH_AFTER_CONTEXT",
    "MEMBER_SEARCH_DEFAULT_LIBRARIES",
]


def clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    clear_env(monkeypatch)

    settings = SearchSettings.from_env()

    assert settings == SearchSettings()
    assert settings.pfgrep_path == DEFAULT_PFGREP_PATH
    assert settings.max_parallel_searches == DEFAULT_MAX_PARALLEL_SEARCHES
    assert settings.max_matches == DEFAULT_MAX_MATCHES
    assert settings.case_sensitive is False


def test_from_env(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("MEMBER_SEARCH_HOST", "ibmi.example.com")
    monkeypatch.setenv("MEMBER_SEARCH_PORT", "2222")
    monkeypatch.setenv("MEMBER_SEARCH_MAX_PARALLEL", "8")
    monkeypatch.setenv("MEMBER_SEARCH_TIMEOUT", "12.5")
    monkeypatch.setenv("MEMBER_SEARCH_CASE_SENSITIVE", "True")
    monkeypatch.setenv("MEMBER_SEARCH_AFTER_CONTEXT", "3")
    monkeypatch.setenv("MEMBER_SEARCH_DEFAULT_LIBRARIES", "ACME,TOOLS")

    settings = SearchSettings.from_env()

    assert settings.host == "ibmi.example.com"
    assert settings.port == 2222
    assert settings.max_parallel_searches == 8
    assert settings.timeout == 12.5
    assert settings.case_sensitive is True
    assert settings.use_regex is False
    assert settings.after_context == 3
    assert settings.default_libraries == "ACME,TOOLS"


def test_malformed_numbers_fall_back(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("MEMBER_SEARCH_MAX_MATCHES", "lots")
    monkeypatch.setenv("MEMBER_SEARCH_TIMEOUT", "soon")

    settings = SearchSettings.from_env()

    assert settings.max_matches == DEFAULT_MAX_MATCHES
    assert settings.timeout == SearchSettings().timeout


def test_max_parallel_is_at_least_one():
    assert SearchSettings(max_parallel_searches=0).max_parallel_searches == 1


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1", True),
        ("yes", True),
        ("TRUE", True),
        (" Yes ", True),
        ("0", False),
        ("no", False),
        ("false", False),
    ],
)
def test_boolean_values(monkeypatch, value, expected):
    clear_env(monkeypatch)
    monkeypatch.setenv("MEMBER_SEARCH_USE_REGEX", value)

    assert SearchSettings.from_env().use_regex is expected


def test_empty_boolean_uses_default(monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("MEMBER_SEARCH_CASE_SENSITIVE", "")

    assert SearchSettings.from_env().case_sensitive is False
