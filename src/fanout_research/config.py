"""
Configuration for the research orchestrator.

Environment Variables:
    RESEARCH_SEARCH_PROVIDER       - duckduckgo (default), tavily or serper
    RESEARCH_ARTIFACT_DIR          - Directory for run-{id}/ artifacts (in-memory if unset)
    RESEARCH_MAX_DEEPENING_ROUNDS  - Follow-up queries per worker (default: 3)
    RESEARCH_MAX_RETRIES           - Retries per failing capability call (default: 2)
    RESEARCH_MIN_SOURCES           - Distinct sources before a thread is comprehensive (default: 3)
    RESEARCH_RESULTS_PER_QUERY     - Results requested per search (default: 5)
    RESEARCH_WORKER_TIMEOUT        - Seconds before a worker is reported TimedOut (default: 120)
    RESEARCH_RUN_DEADLINE          - Seconds before the dispatcher stops waiting (default: 180)
    RESEARCH_SEARCH_TIMEOUT        - HTTP timeout per backend call (default: 10)
    RESEARCH_LOG_LEVEL             - Logging level (default: INFO)
    TAVILY_API_KEY / SERPER_API_KEY - Read by the web search backend

Create a .env file in the project root with:

    RESEARCH_SEARCH_PROVIDER=tavily
    TAVILY_API_KEY=tvly-your-key-here
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ResearchConfig:
    """Run-wide settings shared by the dispatcher and the workers."""

    search_provider: str = "duckduckgo"
    artifact_dir: Optional[str] = None

    # Worker loop bounds
    max_deepening_rounds: int = 3
    max_retries: int = 2
    retry_delay_seconds: float = 0.5
    min_sources: int = 3
    results_per_query: int = 5

    # Time bounds
    worker_timeout_seconds: float = 120.0
    run_deadline_seconds: float = 180.0
    search_timeout_seconds: int = 10

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "ResearchConfig":
        """Load configuration from environment variables (and .env if present)."""
        load_dotenv(dotenv_path)

        return cls(
            search_provider=os.getenv("RESEARCH_SEARCH_PROVIDER", "duckduckgo"),
            artifact_dir=os.getenv("RESEARCH_ARTIFACT_DIR") or None,
            max_deepening_rounds=int(os.getenv("RESEARCH_MAX_DEEPENING_ROUNDS", "3")),
            max_retries=int(os.getenv("RESEARCH_MAX_RETRIES", "2")),
            min_sources=int(os.getenv("RESEARCH_MIN_SOURCES", "3")),
            results_per_query=int(os.getenv("RESEARCH_RESULTS_PER_QUERY", "5")),
            worker_timeout_seconds=float(os.getenv("RESEARCH_WORKER_TIMEOUT", "120")),
            run_deadline_seconds=float(os.getenv("RESEARCH_RUN_DEADLINE", "180")),
            search_timeout_seconds=int(os.getenv("RESEARCH_SEARCH_TIMEOUT", "10")),
            log_level=os.getenv("RESEARCH_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Reject settings that would make the worker loop unbounded or empty."""
        if self.max_deepening_rounds < 0:
            raise ValueError("max_deepening_rounds must be >= 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.min_sources < 1:
            raise ValueError("min_sources must be >= 1")
        if self.worker_timeout_seconds <= 0 or self.run_deadline_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.search_provider not in ("duckduckgo", "tavily", "serper"):
            raise ValueError(f"Unknown search provider: {self.search_provider}")


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging the same way for the CLI and scripts."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
