from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any, Iterable

from research_assistant.models.research import SourceDocument

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    """JSON prompt catalog keyed by dotted paths, reloaded when the file changes."""

    def __init__(self, path: Path = PROMPTS_PATH):
        self.path = path
        self._cache: dict[str, Any] | None = None
        self._mtime_ns: int | None = None

    def _load(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._cache is not None and self._mtime_ns == mtime_ns:
            return self._cache

        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Prompt catalog must be a JSON object.")
        self._cache = payload
        self._mtime_ns = mtime_ns
        return payload

    def entry(self, key: str) -> str:
        node: Any = self._load()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string: {key}")
        return node

    def render(self, key: str, **values: Any) -> str:
        template = Template(self.entry(key))
        try:
            return template.substitute(**values)
        except KeyError as exc:
            missing = str(exc.args[0])
            raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc

    def clear(self) -> None:
        self._cache = None
        self._mtime_ns = None


_catalog = PromptCatalog()


def render_prompt(key: str, **values: Any) -> str:
    return _catalog.render(key, **values)


def clear_prompt_cache() -> None:
    _catalog.clear()


def document_context(
    documents: Iterable[SourceDocument],
    *,
    max_chars: int,
    layout: str = "full",
    separator: str = "\n---\n",
) -> str:
    """Render documents for a prompt, truncating each body to `max_chars`.

    layout="full" includes source and title lines, "source" appends the source
    after the body, "content" emits bodies only.
    """
    blocks: list[str] = []
    for doc in documents:
        body = doc.content[: max(int(max_chars), 0)]
        if layout == "full":
            blocks.append(
                f"Source: {doc.source_url or 'Unknown'}\nTitle: {doc.title}\nContent: {body}"
            )
        elif layout == "source":
            blocks.append(f"{body}\nSource: {doc.source_url}")
        else:
            blocks.append(body)
    return separator.join(blocks)
