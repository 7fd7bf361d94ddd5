"""LLM extraction passes: summary, findings, statistics and follow-up questions.

Each pass renders a bounded prompt, races the model call against its own
deadline and parses the tagged-block response. A timeout, provider failure or
unparseable response never escapes: the pass returns a fallback templated from
the query instead.
"""
from __future__ import annotations

from typing import Sequence

from research_assistant.llm_client import LanguageModel
from research_assistant.models.research import Finding, SourceDocument, Statistic
from research_assistant.services import block_parser
from research_assistant.services.logger import logger
from research_assistant.services.prompt_store import document_context, render_prompt
from research_assistant.services.resilience import run_with_deadline


def fallback_summary(query: str) -> str:
    return (
        f'Research analysis for "{query}" encountered processing issues. '
        f"The topic appears to be related to {query} based on available sources."
    )


def create_fallback_findings(query: str) -> list[Finding]:
    return [
        Finding(
            title="Research Topic Overview",
            content=(
                f"This research focuses on {query} and related concepts. "
                "The analysis covers current developments and key aspects of this topic."
            ),
            source="Research analysis",
            relevance="High",
            category="General",
        )
    ]


def create_fallback_questions(query: str) -> list[str]:
    return [
        f"What are the key components of {query}?",
        f"How can {query} be implemented effectively?",
        f"What are the best practices for {query}?",
        f"What are the latest developments in {query}?",
        f"How does {query} compare to alternative approaches?",
    ]


async def _invoke(model: LanguageModel, prompt: str, timeout_ms: int, label: str) -> str:
    response = await run_with_deadline(model.invoke(prompt), timeout_ms, label)
    return response if isinstance(response, str) else str(response or "")


async def generate_summary(
    model: LanguageModel,
    documents: Sequence[SourceDocument],
    query: str,
    *,
    timeout_ms: int = 8000,
    max_chars: int = 800,
) -> str:
    prompt = render_prompt(
        "summary.prompt",
        query=query,
        context=document_context(documents, max_chars=max_chars, layout="full"),
    )
    try:
        summary = (await _invoke(model, prompt, timeout_ms, "summary")).strip()
    except Exception as e:
        logger.warning(f"Summary generation failed for '{query}': {e}")
        return fallback_summary(query)
    if not summary:
        logger.warning(f"Summary generation returned no text for '{query}'")
        return fallback_summary(query)
    return summary


async def extract_findings(
    model: LanguageModel,
    documents: Sequence[SourceDocument],
    query: str,
    *,
    timeout_ms: int = 10000,
    max_chars: int = 600,
) -> list[Finding]:
    prompt = render_prompt(
        "findings.prompt",
        query=query,
        context=document_context(documents, max_chars=max_chars, layout="source", separator="\n\n---\n\n"),
    )
    try:
        response = await _invoke(model, prompt, timeout_ms, "findings")
    except Exception as e:
        logger.warning(f"Findings extraction failed for '{query}': {e}")
        return create_fallback_findings(query)

    findings = block_parser.parse_findings(response, query)
    if not findings:
        logger.warning(f"No FINDING blocks parsed for '{query}', using fallback")
        return create_fallback_findings(query)
    logger.debug(f"Parsed {len(findings)} findings for '{query}'")
    return findings


async def extract_statistics(
    model: LanguageModel,
    documents: Sequence[SourceDocument],
    query: str,
    *,
    timeout_ms: int = 10000,
    max_chars: int = 500,
) -> list[Statistic]:
    """Validated statistics; an empty list when none can be recovered."""
    prompt = render_prompt(
        "statistics.prompt",
        query=query,
        context=document_context(documents, max_chars=max_chars, layout="content", separator="\n\n"),
    )
    try:
        response = await _invoke(model, prompt, timeout_ms, "statistics")
    except Exception as e:
        logger.warning(f"Statistics extraction failed for '{query}': {e}")
        return []
    return block_parser.parse_statistics(response)


async def generate_questions(
    model: LanguageModel,
    documents: Sequence[SourceDocument],
    query: str,
    *,
    timeout_ms: int = 8000,
    max_chars: int = 200,
) -> list[str]:
    prompt = render_prompt(
        "questions.prompt",
        query=query,
        context=document_context(documents, max_chars=max_chars, layout="content", separator="\n"),
    )
    try:
        response = await _invoke(model, prompt, timeout_ms, "questions")
    except Exception as e:
        logger.warning(f"Question generation failed for '{query}': {e}")
        return create_fallback_questions(query)

    questions = block_parser.parse_questions(response)
    return questions or create_fallback_questions(query)
