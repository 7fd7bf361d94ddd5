"""Query planning and result ranking helpers shared by the searchers."""
from __future__ import annotations

import re
from typing import Iterable, TypeVar

from research_assistant.models.research import SourceDocument
from research_assistant.tools import web_utils

PROGRAMMING_KEYWORDS = (
    "code",
    "program",
    "function",
    "algorithm",
    "develop",
    "software",
    "app",
    "application",
    "website",
    "web",
    "javascript",
    "typescript",
    "python",
    "java",
    "c++",
    "rust",
    "golang",
    "programming",
    "developer",
    "development",
    "script",
    "library",
    "framework",
    "api",
    "backend",
    "frontend",
    "fullstack",
    "database",
    "sql",
    "nosql",
    "react",
    "hooks",
    "angular",
    "vue",
    "node",
    "express",
    "django",
    "flask",
    "spring",
    "docker",
    "kubernetes",
    "devops",
    "git",
    "github",
    "gitlab",
    "ci/cd",
    "continuous integration",
    "deployment",
    "unit test",
    "integration test",
    "e2e test",
)

ACADEMIC_KEYWORDS = (
    "research",
    "study",
    "paper",
    "papers",
    "theory",
    "theorem",
    "quantum",
    "physics",
    "statistics",
    "mathematics",
    "neural network",
    "machine learning",
    "deep learning",
    "experiment",
    "hypothesis",
    "survey",
)

STOP_WORDS = frozenset(
    {
        "the",
        "a",
        "an",
        "and",
        "or",
        "but",
        "in",
        "on",
        "at",
        "to",
        "for",
        "of",
        "with",
        "by",
        "how",
        "what",
        "when",
        "where",
        "why",
        "is",
        "are",
    }
)

EXCLUDED_DOMAINS = ("pinterest.com", "instagram.com", "facebook.com")

_WORD_RE = re.compile(r"[a-z0-9+#]+")

D = TypeVar("D", bound=SourceDocument)


def _contains_keyword(text: str, keyword: str) -> bool:
    # Word-boundary match so "app" does not fire on "happy".
    pattern = r"(?<![a-z0-9])" + re.escape(keyword) + r"(?![a-z0-9])"
    if keyword.isalpha() and len(keyword) > 4:
        pattern = r"(?<![a-z0-9])" + re.escape(keyword)
    return re.search(pattern, text) is not None


def is_programming_query(query: str) -> bool:
    lowered = (query or "").lower()
    return any(_contains_keyword(lowered, keyword) for keyword in PROGRAMMING_KEYWORDS)


def detect_domain(query: str) -> str:
    """Classify a query as programming, academic or general."""
    if is_programming_query(query):
        return "programming"
    lowered = (query or "").lower()
    if any(_contains_keyword(lowered, keyword) for keyword in ACADEMIC_KEYWORDS):
        return "academic"
    return "general"


def query_terms(query: str, *, min_length: int = 0) -> list[str]:
    return [term for term in (query or "").lower().split() if len(term) > min_length]


def extract_keywords(query: str, *, limit: int = 5) -> list[str]:
    words = [w for w in _WORD_RE.findall((query or "").lower()) if len(w) > 2 and w not in STOP_WORDS]
    return words[:limit]


def generate_search_queries(query: str, *, max_queries: int = 3) -> list[str]:
    """Build up to `max_queries` paraphrased variants to widen web recall."""
    base = " ".join((query or "").split())
    if not base:
        return []

    queries = [base]
    if is_programming_query(base):
        queries.append(f"{base} tutorial examples")
        queries.append(f"{base} best practices guide")
        queries.append(f"{base} documentation official")
    else:
        queries.append(f"{base} latest research")
        queries.append(f"{base} comprehensive guide")
        queries.append(f"{base} expert analysis")

    if len(base) > 20:
        keywords = extract_keywords(base)
        if len(keywords) > 1:
            queries.insert(1, " ".join(keywords[:3]))

    deduped: list[str] = []
    seen: set[str] = set()
    for candidate in queries:
        key = candidate.lower()
        if key in seen:
            continue
        seen.add(key)
        deduped.append(candidate)
        if len(deduped) >= max(max_queries, 1):
            break
    return deduped


def relevant_domains(query: str) -> list[str]:
    """Allow-listed domains worth restricting a web search to, if any."""
    lowered = (query or "").lower()
    domains: list[str] = []
    if is_programming_query(query):
        domains.extend(["stackoverflow.com", "github.com", "developer.mozilla.org", "docs.python.org"])
    if "research" in lowered or "study" in lowered:
        domains.extend(["arxiv.org", "scholar.google.com", "researchgate.net"])
    if "news" in lowered:
        domains.extend(["reuters.com", "bbc.com", "techcrunch.com"])
    return domains


def deduplicate(documents: Iterable[D]) -> list[D]:
    """Keep the first document for each normalized URL, preserving order."""
    seen: set[str] = set()
    unique: list[D] = []
    for doc in documents:
        key = web_utils.normalize_url(doc.source_url) or f"untitled:{doc.title.lower()}"
        if key in seen:
            continue
        seen.add(key)
        unique.append(doc)
    return unique


def relevance_score(doc: SourceDocument, query: str) -> float:
    """Provider score blended with title/content term overlap and authority."""
    terms = query_terms(query)
    score = float(doc.relevance_score or 0.0)
    title = doc.title.lower()
    content = doc.content.lower()
    score += sum(1 for term in terms if term in title) * 0.2
    score += sum(1 for term in terms if term in content) * 0.1
    if web_utils.is_authoritative_domain(doc.domain or web_utils.extract_domain(doc.source_url)):
        score += 0.3
    return score


def rank_results(documents: Iterable[D], query: str) -> list[D]:
    scored = [doc.with_score(relevance_score(doc, query)) for doc in documents]
    return sorted(scored, key=lambda d: d.relevance_score, reverse=True)


def merge_and_rank(documents: Iterable[D], query: str, *, limit: int | None = None) -> list[D]:
    ranked = rank_results(deduplicate(documents), query)
    return ranked[:limit] if limit is not None else ranked
