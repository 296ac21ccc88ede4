#!/usr/bin/env python3
"""
Run one exploration journey from the command line.

Usage:
    python scripts/run_journey.py "How could cities store summer heat for winter?"
    python scripts/run_journey.py "Design a tiny key-value store" --depth 4 --interval 2
    python scripts/run_journey.py "..." --no-stream --memory

Providers are configured through the environment (.env):
    AI_PROVIDER, AZURE_ENDPOINT, AZURE_API_KEY, ANTHROPIC_API_KEY
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Configure logging first (before importing other modules)
from journey_engine.core.logging import configure_logging

configure_logging()

from journey_engine.core.config import load_exploration_config, settings
from journey_engine.core.exceptions import ConfigurationError
from journey_engine.domain.models.journey import Journey, JourneyStatus
from journey_engine.llm.registry import build_provider_registry
from journey_engine.persistence.database import init_database
from journey_engine.persistence.repositories import InMemoryJourneyStore, JourneyRepository
from journey_engine.services.exploration_controller import ExplorationController


class ConsoleObserver:
    """Prints streamed text and progress to stdout."""

    def __init__(self, show_reasoning: bool = False):
        self.show_reasoning = show_reasoning

    def on_chunk(self, chunk):
        if chunk.is_complete:
            print()
        elif chunk.type == "reset":
            print("\n[provider retry, discarding partial output]")
        elif chunk.type == "content":
            print(chunk.content, end="", flush=True)
        elif chunk.type == "thinking" and self.show_reasoning:
            print(chunk.content, end="", flush=True)

    def on_stage_complete(self, stage):
        print(f"\n{'-' * 60}")
        print(f"Stage {stage.sequence} ({stage.stage_type.value}): {stage.status.value}")
        if stage.artifacts:
            print(f"  Artifacts: {', '.join(a.title for a in stage.artifacts)}")
        if not stage.output and stage.succeeded:
            print("  (empty completion)")
        print(f"{'-' * 60}\n")

    def on_synthesis_complete(self, report):
        print(f"\n{'=' * 60}")
        print(f"SYNTHESIS {report.synthesis_number} (stages {report.stage_range[0]}-{report.stage_range[1]})")
        print(f"{'=' * 60}")
        print(report.summary)
        for insight in report.key_insights:
            print(f"  - {insight}")
        print()

    def on_journey_status_change(self, status):
        print(f"[journey {status.value}]")

    def on_error(self, error, is_fatal):
        label = "ERROR" if is_fatal else "WARNING"
        print(f"[{label}] {error}", file=sys.stderr)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Run one exploration journey")
    parser.add_argument("question", help="Question or topic to explore")
    parser.add_argument("--depth", type=int, help="Number of stages to run")
    parser.add_argument("--interval", type=int, help="Synthesize every N stages")
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Wait for whole stage outputs instead of streaming",
    )
    parser.add_argument(
        "--reasoning",
        action="store_true",
        help="Enable extended reasoning (and print the reasoning stream)",
    )
    parser.add_argument("--provider", help="Primary provider id (azure or anthropic)")
    parser.add_argument("--fallback", help="Fallback provider id")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Keep the journey in memory instead of the SQLite database",
    )
    args = parser.parse_args()

    overrides = {}
    if args.depth is not None:
        overrides["max_depth"] = args.depth
    if args.interval is not None:
        overrides["synthesis_interval"] = args.interval
    if args.no_stream:
        overrides["streaming"] = False
    if args.reasoning:
        overrides["extended_reasoning"] = True
    if args.provider:
        overrides["provider"] = args.provider
    if args.fallback:
        overrides["fallback_provider"] = args.fallback

    config = load_exploration_config()
    if args.provider and not args.fallback and config.fallback_provider == args.provider.lower():
        overrides["fallback_provider"] = None
    config = config.model_validate({**config.model_dump(), **overrides})

    try:
        registry = build_provider_registry(settings, primary=config.provider)
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2

    if args.memory:
        store = InMemoryJourneyStore()
    else:
        await init_database(settings.database_path)
        store = JourneyRepository(str(settings.database_path))

    journey = Journey(question=args.question, max_depth=config.max_depth)
    controller = ExplorationController(
        journey,
        registry,
        store,
        config,
        observer=ConsoleObserver(show_reasoning=args.reasoning),
    )

    print("Running journey:")
    print(f"  Question: {journey.question}")
    print(f"  Max depth: {journey.max_depth or 'unbounded'}")
    print(f"  Provider: {config.provider} (fallback: {config.fallback_provider or 'none'})")
    print()

    await controller.start()

    print(f"\n{'=' * 60}")
    print(f"JOURNEY {journey.status.value.upper()}")
    print(f"{'=' * 60}")
    print(f"Stages: {journey.stage_count}")
    print(f"Syntheses: {journey.synthesis_count}")
    print(f"Artifacts: {sum(len(s.artifacts) for s in journey.stages)}")
    totals = controller.usage.get_journey_totals(journey.id)
    print(f"Tokens: {totals.input_tokens} in / {totals.output_tokens} out")
    if journey.error:
        print(f"Error: {journey.error}")

    return 0 if journey.status != JourneyStatus.FAILED else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
