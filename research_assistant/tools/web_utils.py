from __future__ import annotations

import re
from urllib.parse import urlparse, urlunparse

AUTHORITATIVE_DOMAINS = (
    "wikipedia.org",
    "github.com",
    "stackoverflow.com",
    "mozilla.org",
    "python.org",
    "nodejs.org",
    "reactjs.org",
    "angular.io",
    "vuejs.org",
    "arxiv.org",
    "nature.com",
    "science.org",
    "ieee.org",
)


def clean_content(text: str, max_length: int | None = None) -> str:
    """Collapse whitespace and drop characters outside prose punctuation."""
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[^\w\s.,!?;:()\-\"'`{}\[\]=<>/#+*]", "", text).strip()
    if max_length is not None and len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def extract_domain(url: str) -> str:
    """Extract the hostname from a URL, empty when it cannot be parsed."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def normalize_url(url: str) -> str:
    """Canonical form used for deduplication.

    Scheme, host and path are lower-cased, http is folded into https, a
    leading ``www.`` and any fragment are dropped, and a trailing slash on the
    path is removed. The query string is kept as is.
    """
    raw = (url or "").strip()
    if not raw:
        return ""
    try:
        parsed = urlparse(raw)
    except ValueError:
        return raw.lower().rstrip("/")
    if not parsed.netloc:
        return raw.lower().rstrip("/")
    host = parsed.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    path = parsed.path.rstrip("/")
    scheme = parsed.scheme.lower()
    if scheme == "http":
        scheme = "https"
    return urlunparse((scheme, host, path.lower(), "", parsed.query, ""))


def is_authoritative_domain(domain: str) -> bool:
    domain = (domain or "").lower()
    return any(auth in domain for auth in AUTHORITATIVE_DOMAINS)
