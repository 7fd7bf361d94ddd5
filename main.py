"""Research Assistant

Simple CLI for running research queries.
"""

import argparse
import asyncio
import json
from contextlib import aclosing
from dataclasses import replace

from research_assistant.agents.orchestrator import ResearchOrchestrator
from research_assistant.config import ResearchConfig, settings
from research_assistant.models.research import Strategy
from research_assistant.services.credentials import SettingsCredentialProvider


def build_orchestrator(model: str | None = None) -> ResearchOrchestrator:
    config = ResearchConfig.from_settings(settings)
    if model:
        config = replace(config, model=model)
    return ResearchOrchestrator(config, SettingsCredentialProvider(settings))


def print_result(data: dict) -> None:
    metadata = data.get("metadata", {})
    print("\n[*] Research Complete!")
    print(f"   Depth: {metadata.get('researchDepth')}")
    print(f"   Sources: {metadata.get('sourcesCount')}")
    print(f"   Confidence: {metadata.get('confidence')}")
    if metadata.get("error"):
        print(f"   Degraded: {metadata.get('errorMessage')}")
    print(f"\n{'=' * 50}")
    print("SUMMARY:")
    print(f"{'=' * 50}")
    print(data.get("summary", ""))

    findings = data.get("findings", [])
    if findings:
        print(f"\nFINDINGS ({len(findings)}):")
        for i, finding in enumerate(findings, 1):
            print(f"  {i}. [{finding.get('relevance')}] {finding.get('title')}")
            print(f"     {finding.get('content')}")

    statistics = data.get("statistics", [])
    if statistics:
        print("\nSTATISTICS:")
        for stat in statistics:
            print(f"  - {stat.get('metric')}: {stat.get('value')}")

    for example in data.get("codeExamples", []):
        print(f"\nCODE: {example.get('title')} ({example.get('language')})")
        print(example.get("code", ""))

    questions = data.get("suggestedQuestions", [])
    if questions:
        print("\nFOLLOW-UP QUESTIONS:")
        for question in questions:
            print(f"  - {question}")


async def run_research(
    query: str,
    strategy: str | None = None,
    model: str | None = None,
    as_json: bool = False,
) -> int:
    """Run research on the given query."""
    if not as_json:
        print(f"Research query: {query}")
        print("-" * 50)

    orchestrator = build_orchestrator(model)
    exit_code = 0

    async with aclosing(orchestrator.stream(query, strategy)) as events:
        async for event in events:
            payload = event.to_dict()
            if "error" in payload or payload.get("research", {}).get("metadata", {}).get("error"):
                exit_code = 1
            if as_json:
                print(json.dumps(payload))
                continue

            if "status" in payload:
                status = payload["status"]
                progress = status["progress"]
                print(f"[~] ({progress['current']}/{progress['total']}) {status['stage']}: {status['message']}")
            elif "research" in payload:
                print_result(payload["research"])
            elif "error" in payload:
                print(f"\n[!] Error: {payload['error']}")

    return exit_code


def main():
    parser = argparse.ArgumentParser(description="Research Assistant")
    parser.add_argument("--query", "-q", required=True, help="Research query")
    parser.add_argument(
        "--strategy",
        "-s",
        choices=[s.value for s in Strategy],
        help="Force a strategy instead of classifying the query",
    )
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")
    parser.add_argument("--json", action="store_true", help="Print raw NDJSON events")

    args = parser.parse_args()

    raise SystemExit(asyncio.run(run_research(args.query, args.strategy, args.model, args.json)))


if __name__ == "__main__":
    main()
