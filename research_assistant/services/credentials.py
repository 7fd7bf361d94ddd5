from __future__ import annotations

from typing import Mapping, Protocol

from research_assistant.config import Settings

TAVILY_API_KEY = "tavily_api_key"
GITHUB_TOKEN = "github_token"
OPENROUTER_API_KEY = "openrouter_api_key"


class CredentialProvider(Protocol):
    def get(self, name: str) -> str | None: ...


class StaticCredentialProvider:
    """Credentials held in an explicit mapping, typically built by the caller."""

    def __init__(self, values: Mapping[str, str | None] | None = None):
        self._values = {k: v for k, v in (values or {}).items() if v}

    def get(self, name: str) -> str | None:
        return self._values.get(name)


class SettingsCredentialProvider:
    """Read keys from a Settings instance that the entry point loaded."""

    _FIELDS = (TAVILY_API_KEY, GITHUB_TOKEN, OPENROUTER_API_KEY)

    def __init__(self, source: Settings):
        self._source = source

    def get(self, name: str) -> str | None:
        if name not in self._FIELDS:
            return None
        value = getattr(self._source, name, "")
        return value.strip() if isinstance(value, str) and value.strip() else None
