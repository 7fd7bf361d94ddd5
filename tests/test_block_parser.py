from __future__ import annotations

import pytest

from research_assistant.models.research import CodeExample, Finding, Question, Statistic
from research_assistant.services import block_parser

FINDINGS_TEXT = """
Here is what I found.

FINDING_START
TITLE: Hooks replace class lifecycle methods
CONTENT: React hooks let function components manage state and side effects.
SOURCE: https://react.dev/reference/react
CATEGORY: Technology
FINDING_END

FINDING_START
CONTENT: This block has no title and must be skipped.
FINDING_END

FINDING_START
TITLE: Custom hooks share logic
CONTENT: Custom hooks extract reusable stateful behavior between components.
FINDING_END
"""


def test_parse_findings_skips_blocks_without_required_fields():
    findings = block_parser.parse_findings(FINDINGS_TEXT, "react hooks")

    assert [f.title for f in findings] == ["Hooks replace class lifecycle methods", "Custom hooks share logic"]
    assert findings[0].source == "https://react.dev/reference/react"
    assert findings[0].category == "Technology"
    assert findings[1].source == "Research data"
    assert findings[1].category == "General"


def test_parse_findings_caps_at_six():
    block = "FINDING_START\nTITLE: t{n}\nCONTENT: c{n}\nFINDING_END\n"
    text = "".join(block.format(n=n) for n in range(10))
    assert len(block_parser.parse_findings(text)) == block_parser.MAX_FINDINGS


def test_parse_findings_unterminated_last_block_is_used():
    text = "FINDING_START\nTITLE: Tail\nCONTENT: The response was cut off here"
    findings = block_parser.parse_findings(text)
    assert len(findings) == 1
    assert findings[0].content == "The response was cut off here"


def test_determine_relevance_levels():
    assert block_parser.determine_relevance("React hooks", "state in react hooks", "react hooks") == "High"
    assert block_parser.determine_relevance("React basics", "components", "react hooks guide") == "Low"
    assert block_parser.determine_relevance("Hooks", "react rendering", "react hooks guide tutorial") == "Medium"
    assert block_parser.determine_relevance("anything", "at all", "AI") == "High"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("42%", True),
        ("$1.2 billion", True),
        ("3.5 million users", True),
        ("many", False),
        ("a large number of users", False),
        ("1" + "x" * 120, False),
        ("", False),
    ],
)
def test_is_valid_statistic(value, expected):
    assert block_parser.is_valid_statistic(value) is expected


def test_parse_statistics_drops_invalid_values():
    text = """
STAT_START
METRIC: Global market size
VALUE: $4.5 billion
CONTEXT: Estimated for 2024
SOURCE: Industry report
STAT_END
STAT_START
METRIC: Adoption
VALUE: very high
STAT_END
STAT_START
METRIC: Growth rate
VALUE: 12% per year
STAT_END
"""
    statistics = block_parser.parse_statistics(text)
    assert [s.metric for s in statistics] == ["Global market size", "Growth rate"]
    assert statistics[0].context == "Estimated for 2024"
    assert statistics[1].context == "Statistical data"
    assert statistics[1].source == "Research data"


def test_parse_questions_filters_short_lines_and_caps():
    text = "\n".join(
        [
            "Q: Why?",
            "Q: How do hooks interact with concurrent rendering?",
            "not a question line",
            *[f"Q: What is follow-up question number {n}?" for n in range(6)],
        ]
    )
    questions = block_parser.parse_questions(text)
    assert len(questions) == block_parser.MAX_QUESTIONS
    assert questions[0] == "How do hooks interact with concurrent rendering?"
    assert "Why?" not in questions


def test_parse_generated_code_from_fenced_block():
    text = """TITLE: Quicksort
LANGUAGE: python
```python
def quicksort(items):
    return sorted(items)
```
DESCRIPTION: Sorts a list."""
    examples = block_parser.parse_generated_code(text, "javascript")
    assert len(examples) == 1
    example = examples[0]
    assert example.title == "Quicksort"
    assert example.language == "python"
    assert example.code.startswith("def quicksort")
    assert example.description == "Sorts a list."
    assert example.source == "AI-generated"


def test_parse_generated_code_from_markers_uses_requested_language():
    text = "CODE_START\nconsole.log('hi');\nCODE_END"
    examples = block_parser.parse_generated_code(text, "javascript")
    assert examples[0].language == "javascript"
    assert examples[0].title == "Javascript Example"
    assert examples[0].code == "console.log('hi');"


def test_parse_generated_code_without_code_returns_nothing():
    assert block_parser.parse_generated_code("Sorry, I cannot help with that.", "python") == []


def test_parse_blocks_collects_every_kind():
    text = (
        FINDINGS_TEXT
        + "\nSTAT_START\nMETRIC: Downloads\nVALUE: 20 million\nSTAT_END\n"
        + "Q: Which hooks are most commonly misused?\n"
        + "```js\nconst [count, setCount] = useState(0);\n```\n"
    )
    blocks = block_parser.parse_blocks(text, "react hooks")
    kinds = [type(block) for block in blocks]
    assert kinds.count(Finding) == 2
    assert kinds.count(Statistic) == 1
    assert kinds.count(Question) == 1
    assert kinds.count(CodeExample) == 1
    code = next(block for block in blocks if isinstance(block, CodeExample))
    assert code.language == "js"
