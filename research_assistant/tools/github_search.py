from __future__ import annotations

import re
from typing import Any, Protocol

import httpx

from research_assistant.config import ResearchConfig
from research_assistant.models.research import SourceDocument
from research_assistant.services.credentials import GITHUB_TOKEN, CredentialProvider
from research_assistant.services.env_safety import sanitize_ssl_keylogfile
from research_assistant.services.logger import logger
from research_assistant.tools import web_utils

MIN_STARS = 5
MIN_DESCRIPTION_LENGTH = 10
QUALITY_FILTER = "stars:>10 pushed:>2022-01-01"

# Checked in order; word-boundary match so "go" does not fire on "google".
_LANGUAGE_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("python", ("python",)),
    ("javascript", ("javascript", "js")),
    ("typescript", ("typescript", "ts")),
    ("java", ("java",)),
    ("c++", ("c++", "cpp")),
    ("c#", ("c#", "csharp")),
    ("go", ("go", "golang")),
    ("rust", ("rust",)),
    ("swift", ("swift",)),
    ("kotlin", ("kotlin",)),
    ("php", ("php",)),
    ("ruby", ("ruby",)),
)
_QUERY_LANGUAGES = ("python", "javascript", "typescript")


class CodeRepositorySearchProvider(Protocol):
    async def search(self, query: str) -> list[SourceDocument]: ...


def _mentions(text: str, token: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(token)}(?![a-z0-9])", text) is not None


def language_filter(query: str) -> str | None:
    lowered = (query or "").lower()
    for language, hints in _LANGUAGE_HINTS:
        if any(_mentions(lowered, hint) for hint in hints):
            return language
    return None


def enhance_query(query: str) -> str:
    language = language_filter(query)
    parts = [query.strip()]
    if language in _QUERY_LANGUAGES:
        parts.append(f"language:{language}")
    parts.append(QUALITY_FILTER)
    return " ".join(parts)


def is_relevant_repository(repo: dict[str, Any], query: str) -> bool:
    terms = [term for term in query.lower().split() if len(term) > 2]
    description = repo.get("description") or ""
    text = f"{repo.get('full_name') or ''} {description}".lower()
    return (
        any(term in text for term in terms)
        and int(repo.get("stargazers_count") or 0) >= MIN_STARS
        and len(description) > MIN_DESCRIPTION_LENGTH
    )


def repository_to_document(repo: dict[str, Any]) -> SourceDocument:
    url = str(repo.get("html_url") or "")
    name = str(repo.get("full_name") or "")
    description = str(repo.get("description") or "No description available")
    stars = int(repo.get("stargazers_count") or 0)
    language = repo.get("language") or "Unknown"
    topics = ", ".join(repo.get("topics") or [])
    lines = [
        f"Repository {name}: {description}",
        f"Primary language: {language}. Stars: {stars}.",
    ]
    if topics:
        lines.append(f"Topics: {topics}.")
    lines.append(f"Source code and documentation are available at {url}.")
    content = "\n".join(lines)
    return SourceDocument(
        content=content,
        source_url=url,
        title=name,
        domain=web_utils.extract_domain(url) or "github.com",
        relevance_score=min(stars / 10000, 1.0),
        content_length=len(content),
        provider="github",
        metadata={"stars": stars, "language": language},
    )


class GitHubSearcher:
    """Repository search against the GitHub REST search API."""

    def __init__(
        self,
        config: ResearchConfig,
        credentials: CredentialProvider,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._credentials = credentials
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "research-assistant",
        }
        token = self._credentials.get(GITHUB_TOKEN)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def search(self, query: str) -> list[SourceDocument]:
        params = {
            "q": enhance_query(query),
            "sort": "stars",
            "order": "desc",
            "per_page": str(self.config.github_per_page),
        }
        try:
            sanitize_ssl_keylogfile()
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.provider_http_timeout_s,
            ) as client:
                response = await client.get(self.config.github_api_url, params=params, headers=self._headers())
                response.raise_for_status()
                payload = response.json()
        except Exception as e:
            logger.warning(f"GitHub search failed for '{query}': {e}")
            return []

        items = payload.get("items") if isinstance(payload, dict) else None
        repositories = [repo for repo in items or [] if isinstance(repo, dict) and is_relevant_repository(repo, query)]
        logger.info(f"GitHub returned {len(repositories)} relevant repositories for '{query}'")
        return [repository_to_document(repo) for repo in repositories]
