"""Tolerant extraction of tagged blocks from free-text model output.

Model output is parsed by block tags and field labels rather than as JSON. A
block missing a required field is skipped; the rest of the response is still
used.
"""
from __future__ import annotations

import re

from research_assistant.models.research import CodeExample, Finding, ParsedBlock, Question, Statistic
from research_assistant.tools.search_utils import query_terms

MAX_FINDINGS = 6
MAX_QUESTIONS = 5
MIN_QUESTION_LENGTH = 10

FENCED_CODE_RE = re.compile(r"```(\w+)?\s*([\s\S]*?)```")
_CODE_MARKERS_RE = re.compile(r"CODE_START\s*([\s\S]*?)\s*CODE_END")
_PROSE_ONLY_RE = re.compile(r"^[a-zA-Z\s]+$")


def split_blocks(text: str, start_tag: str, end_tag: str) -> list[str]:
    """Bodies between `start_tag` and `end_tag`; an unterminated last block runs to the end."""
    blocks: list[str] = []
    for raw in (text or "").split(start_tag)[1:]:
        end = raw.find(end_tag)
        blocks.append(raw[:end] if end > -1 else raw)
    return blocks


def extract_field(block: str, label: str, next_label: str | None = None) -> str | None:
    stop = rf"\n|{re.escape(next_label)}:|$" if next_label else r"\n|$"
    match = re.search(rf"{re.escape(label)}:\s*(.+?)(?={stop})", block, re.S)
    if not match:
        return None
    value = match.group(1).strip()
    return value or None


def determine_relevance(title: str, content: str, query: str) -> str:
    """High/Medium/Low from the share of query terms the finding mentions."""
    terms = query_terms(query, min_length=2)
    if not terms:
        return "High"
    text = f"{title} {content}".lower()
    overlap = sum(1 for term in terms if term in text) / len(terms)
    if overlap >= 0.7:
        return "High"
    if overlap >= 0.4:
        return "Medium"
    return "Low"


def parse_findings(text: str, query: str = "") -> list[Finding]:
    findings: list[Finding] = []
    for block in split_blocks(text, "FINDING_START", "FINDING_END"):
        title = extract_field(block, "TITLE", "CONTENT")
        content = extract_field(block, "CONTENT", "SOURCE")
        if not title or not content:
            continue
        findings.append(
            Finding(
                title=title,
                content=content,
                source=extract_field(block, "SOURCE", "CATEGORY") or "Research data",
                relevance=determine_relevance(title, content, query),
                category=extract_field(block, "CATEGORY") or "General",
            )
        )
        if len(findings) >= MAX_FINDINGS:
            break
    return findings


def is_valid_statistic(value: str) -> bool:
    value = value or ""
    return bool(re.search(r"\d", value)) and len(value) < 100 and not _PROSE_ONLY_RE.match(value)


def parse_statistics(text: str) -> list[Statistic]:
    statistics: list[Statistic] = []
    for block in split_blocks(text, "STAT_START", "STAT_END"):
        metric = extract_field(block, "METRIC", "VALUE")
        value = extract_field(block, "VALUE", "CONTEXT")
        if not metric or not value or not is_valid_statistic(value):
            continue
        statistics.append(
            Statistic(
                metric=metric,
                value=value,
                context=extract_field(block, "CONTEXT", "SOURCE") or "Statistical data",
                source=extract_field(block, "SOURCE") or "Research data",
            )
        )
    return statistics


def parse_questions(text: str) -> list[str]:
    questions: list[str] = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line.startswith("Q:"):
            continue
        question = line[2:].strip()
        if len(question) > MIN_QUESTION_LENGTH:
            questions.append(question)
        if len(questions) >= MAX_QUESTIONS:
            break
    return questions


def parse_generated_code(text: str, language: str) -> list[CodeExample]:
    """One example from TITLE:/LANGUAGE:/fenced code/DESCRIPTION: output, or none."""
    text = text or ""
    fenced = FENCED_CODE_RE.search(text)
    if fenced:
        code = fenced.group(2).strip()
        fence_language = (fenced.group(1) or "").lower()
    else:
        markers = _CODE_MARKERS_RE.search(text)
        if not markers:
            return []
        code = markers.group(1).strip()
        fence_language = ""
    if not code:
        return []

    declared = (extract_field(text, "LANGUAGE") or "").lower().strip("`")
    resolved = declared or fence_language or language
    return [
        CodeExample(
            title=extract_field(text, "TITLE") or f"{resolved.capitalize()} Example",
            language=resolved,
            code=code,
            description=extract_field(text, "DESCRIPTION") or "Generated code example",
            source="AI-generated",
        )
    ]


def parse_blocks(text: str, query: str = "") -> list[ParsedBlock]:
    """Every recognizable block in `text`, in grammar order."""
    blocks: list[ParsedBlock] = []
    blocks.extend(parse_findings(text, query))
    blocks.extend(parse_statistics(text))
    blocks.extend(Question(q) for q in parse_questions(text))
    for match in FENCED_CODE_RE.finditer(text or ""):
        code = match.group(2).strip()
        if code:
            language = (match.group(1) or "text").lower()
            blocks.append(CodeExample(title=f"{language.capitalize()} Example", language=language, code=code))
    return blocks
