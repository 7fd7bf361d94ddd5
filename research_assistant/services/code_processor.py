"""Code examples for programming queries.

Fenced blocks already present in the sources are preferred. When fewer than
two survive validation, one example is generated by the model, and if that
also fails a templated skeleton is returned.
"""
from __future__ import annotations

import re
from typing import Sequence

from research_assistant.llm_client import LanguageModel
from research_assistant.models.research import CodeExample, SourceDocument
from research_assistant.services import block_parser
from research_assistant.services.logger import logger
from research_assistant.services.prompt_store import document_context, render_prompt
from research_assistant.services.resilience import run_with_deadline
from research_assistant.tools.search_utils import extract_keywords

MAX_EXAMPLES = 3
MIN_DIRECT_EXAMPLES = 2
MIN_CODE_LENGTH = 20

_CODE_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"function\s+\w+",
        r"def\s+\w+",
        r"class\s+\w+",
        r"import\s+\w+",
        r"const\s+\w+",
        r"let\s+\w+",
        r"var\s+\w+",
        r"#include",
        r"public\s+class",
    )
)

# Checked in order; the first group with a match wins.
_LANGUAGE_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("python", ("python", "django", "flask")),
    ("javascript", ("javascript", "js", "node")),
    ("java", ("java", "spring")),
    ("typescript", ("typescript", "ts")),
    ("javascript", ("react", "vue", "angular")),
)
DEFAULT_LANGUAGE = "python"


def is_valid_code(code: str, language: str) -> bool:
    if any(pattern.search(code) for pattern in _CODE_PATTERNS):
        return True
    if "{" in code or "(" in code:
        return True
    return language == "python" and ":" in code


def detect_language(query: str) -> str:
    lowered = (query or "").lower()
    for language, hints in _LANGUAGE_HINTS:
        if any(re.search(rf"(?<![a-z0-9]){re.escape(hint)}(?![a-z0-9])", lowered) for hint in hints):
            return language
    return DEFAULT_LANGUAGE


def extract_direct_examples(documents: Sequence[SourceDocument]) -> list[CodeExample]:
    examples: list[CodeExample] = []
    seen: set[str] = set()
    for doc in documents:
        for match in block_parser.FENCED_CODE_RE.finditer(doc.content):
            language = (match.group(1) or "text").lower()
            code = match.group(2).strip()
            if len(code) <= MIN_CODE_LENGTH or not is_valid_code(code, language) or code in seen:
                continue
            seen.add(code)
            examples.append(
                CodeExample(
                    title=f"{language.capitalize()} Example",
                    language=language,
                    code=code,
                    description="Code example extracted from source documentation",
                    source=doc.source_url or "Research data",
                )
            )
    return examples


def fallback_code(query: str, language: str) -> str:
    if language == "python":
        return (
            f"# Example implementation for {query}\n"
            "def main():\n"
            f'    """A simple example demonstrating {query}"""\n'
            f'    print("Working with: {query}")\n'
            "    result = process_data()\n"
            "    return result\n"
            "\n\n"
            "def process_data():\n"
            '    """Process data related to the query"""\n'
            '    return "Example result"\n'
            "\n\n"
            'if __name__ == "__main__":\n'
            "    main()\n"
        )
    if language == "javascript":
        return (
            f"// Example implementation for {query}\n"
            "function main() {\n"
            f'    console.log("Working with: {query}");\n'
            "    const result = processData();\n"
            "    return result;\n"
            "}\n"
            "\n"
            "function processData() {\n"
            '    return "Example result";\n'
            "}\n"
            "\n"
            "main();\n"
        )
    return (
        f"// Example code for {query}\n"
        "function example() {\n"
        f'    console.log("This demonstrates {query}");\n'
        '    return "result";\n'
        "}\n"
    )


def create_fallback_examples(query: str) -> list[CodeExample]:
    language = detect_language(query)
    return [
        CodeExample(
            title=f"Basic {language} Example",
            language=language,
            code=fallback_code(query, language),
            description=f"A simple example demonstrating concepts related to {query}",
            source="Generated example",
        )
    ]


def rank_examples(examples: Sequence[CodeExample], query: str) -> list[CodeExample]:
    """Stable re-rank by how many query keywords an example mentions."""
    keywords = extract_keywords(query, limit=10)

    def overlap(example: CodeExample) -> int:
        text = f"{example.title} {example.description} {example.code}".lower()
        return sum(1 for keyword in keywords if keyword in text)

    return sorted(examples, key=overlap, reverse=True)


async def generate_example(
    model: LanguageModel,
    documents: Sequence[SourceDocument],
    query: str,
    *,
    timeout_ms: int,
    max_chars: int = 300,
) -> list[CodeExample]:
    language = detect_language(query)
    prompt = render_prompt(
        "code.prompt",
        query=query,
        language=language,
        context=document_context(documents, max_chars=max_chars, layout="content", separator="\n"),
    )
    try:
        response = await run_with_deadline(model.invoke(prompt), timeout_ms, "code")
    except Exception as e:
        logger.warning(f"Code generation failed for '{query}': {e}")
        return []
    return block_parser.parse_generated_code(str(response or ""), language)


async def extract_code_examples(
    model: LanguageModel,
    documents: Sequence[SourceDocument],
    query: str,
    *,
    timeout_ms: int = 10000,
    max_chars: int = 300,
) -> list[CodeExample]:
    direct = extract_direct_examples(documents)
    if len(direct) >= MIN_DIRECT_EXAMPLES:
        logger.debug(f"Using {len(direct)} direct code examples for '{query}'")
        return rank_examples(direct, query)[:MAX_EXAMPLES]

    examples = direct + await generate_example(
        model, documents, query, timeout_ms=timeout_ms, max_chars=max_chars
    )
    if not examples:
        logger.warning(f"No code examples recovered for '{query}', using skeleton")
        return create_fallback_examples(query)
    return rank_examples(examples, query)[:MAX_EXAMPLES]
