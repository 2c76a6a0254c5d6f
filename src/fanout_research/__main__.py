"""
Run one research pass from the command line.

Usage:
    python -m fanout_research "What is Redis?"
    python -m fanout_research "Compare Kafka vs Pulsar" --artifacts ./runs
    python -m fanout_research "..." --provider tavily --log-level DEBUG

Settings not given on the command line come from the environment
(or a .env file); see fanout_research.config.
"""

import sys
import asyncio
import argparse
import logging

from .config import ResearchConfig, configure_logging
from .errors import ClassificationError, StorageError
from .orchestrator import ResearchOrchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fanout_research",
        description="Research a question with parallel isolated workers"
    )
    parser.add_argument("query", help="Research question")
    parser.add_argument("--artifacts", default=None, help="Directory for run-{id}/ artifacts")
    parser.add_argument(
        "--provider",
        choices=["duckduckgo", "tavily", "serper"],
        default=None,
        help="Search provider"
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = ResearchConfig.from_env()
    if args.artifacts:
        config.artifact_dir = args.artifacts
    if args.provider:
        config.search_provider = args.provider
    if args.log_level:
        config.log_level = args.log_level

    configure_logging(config.log_level)

    try:
        orchestrator = ResearchOrchestrator(config)
        result = asyncio.run(orchestrator.research(args.query))
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except ClassificationError as e:
        logger.error(f"Cannot research this query: {e}")
        return 2
    except StorageError as e:
        logger.error(f"Could not persist run artifacts: {e}")
        return 1

    print("=" * 70)
    print(orchestrator.get_summary(result))
    print("=" * 70)
    print()
    print(result.final_output.body)

    if config.artifact_dir:
        print(f"\nArtifacts saved under {config.artifact_dir}/run-{result.run_id}/")
    return 0


if __name__ == "__main__":
    sys.exit(main())
