"""
Research Orchestrator - Coordinates the classify, plan, fan-out and merge stages.

This is the main entry point for the research system.
"""

import json
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime

from ..agents.classifier import Classification, QueryClassifier
from ..agents.planner import PlannerAgent, ResearchPlan
from ..agents.synthesizer import FinalOutput, SynthesizerAgent
from ..config import ResearchConfig
from ..store import FindingsStore, open_store
from ..tools.capabilities import CapabilityTable, build_default_tools
from .dispatcher import Dispatcher, TerminalStatus

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Complete result of one research run."""
    run_id: str
    classification: Classification
    plan: ResearchPlan
    statuses: Dict[str, TerminalStatus]
    final_output: FinalOutput
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def query(self) -> str:
        return self.plan.query

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "classification": self.classification.to_dict(),
            "plan": self.plan.to_dict(),
            "statuses": {k: v.to_dict() for k, v in self.statuses.items()},
            "final_output": self.final_output.to_dict(),
            "metadata": self.metadata
        }

    def save_json(self, filename: str) -> None:
        """Save results to JSON file."""
        with open(filename, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved results to {filename}")

    def save_markdown(self, filename: str) -> None:
        """Save the final body to a Markdown file."""
        content = self.final_output.body
        content += "\n\n---\n\n"
        content += f"*Run: {self.run_id}*\n"
        content += f"*Generated: {self.metadata.get('timestamp', 'Unknown')}*\n"
        content += f"*Threads: {self.metadata.get('num_findings', 0)}/{len(self.plan.threads)} reported*\n"
        content += f"*Confidence: {self.final_output.confidence_level}*\n"

        with open(filename, "w") as f:
            f.write(content)
        logger.info(f"Saved report to {filename}")


class ResearchOrchestrator:
    """
    Orchestrates the stages of a research run.

    Workflow:
    1. Classifier: decides query type, complexity and worker count
    2. Planner: splits the query into independent threads (plan written)
    3. Dispatcher: one isolated worker per thread, each writes one finding
    4. Synthesizer: after the barrier, merges findings (final output written)
    """

    def __init__(
        self,
        config: Optional[ResearchConfig] = None,
        tools: Optional[Dict[str, Any]] = None,
        capability_table: Optional[CapabilityTable] = None,
        store_factory: Optional[Callable[[Optional[str]], FindingsStore]] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Run settings; defaults to ResearchConfig()
            tools: Capability name -> source tool; defaults to the web backends
            capability_table: Signal -> capability rules
            store_factory: Called with a run id to open that run's store
        """
        self.config = config or ResearchConfig()
        self.config.validate()

        self.capability_table = capability_table or CapabilityTable()

        if tools is None:
            logger.info(f"Initializing search tools: {self.config.search_provider}")
            tools = build_default_tools(self.config)
        self.tools = tools

        missing = [c for c in self.capability_table.capabilities if c not in self.tools]
        if missing:
            logger.warning(f"No tool registered for capabilities: {missing}")

        self.store_factory = store_factory or (
            lambda run_id: open_store(self.config.artifact_dir, run_id)
        )

        self.classifier = QueryClassifier(self.capability_table)
        self.planner = PlannerAgent(self.capability_table)
        self.synthesizer = SynthesizerAgent()

        logger.info("Orchestrator initialized successfully")

    async def research(self, query: str, run_id: Optional[str] = None) -> RunResult:
        """
        Execute one complete research run.

        Args:
            query: Research question
            run_id: Optional id for the run's artifact namespace

        Returns:
            RunResult with plan, statuses and final output

        Raises:
            ClassificationError: if the query cannot be classified
            StorageError: if an artifact cannot be written
        """
        start_time = datetime.now()
        logger.info(f"Starting research: '{query}'")

        # Step 1: Classify (fails before any thread work)
        classification = self.classifier.classify(query)
        logger.info(
            f"STEP 1: Classified as {classification.complexity.value} "
            f"{classification.query_type.value} ({classification.worker_count} workers)"
        )

        # Step 2: Plan
        logger.info("STEP 2: Planning threads...")
        plan = self.planner.plan(classification)
        store = self.store_factory(run_id)
        store.write_plan(plan)

        # Step 3: Fan out
        logger.info(f"STEP 3: Researching {len(plan.threads)} threads in parallel...")
        dispatcher = Dispatcher(store, self.tools, self.config)
        statuses = await dispatcher.dispatch(plan.threads)
        store.seal()

        # Step 4: Synthesize
        logger.info("STEP 4: Synthesizing final output...")
        final_output = self.synthesizer.synthesize(plan, statuses, store)
        store.write_final_output(final_output)

        duration = (datetime.now() - start_time).total_seconds()
        found = [t for t in plan.thread_ids if store.exists(t)]

        result = RunResult(
            run_id=store.run_id,
            classification=classification,
            plan=plan,
            statuses=statuses,
            final_output=final_output,
            metadata={
                "timestamp": start_time.isoformat(),
                "duration_seconds": duration,
                "num_threads": len(plan.threads),
                "num_findings": len(found),
                "num_conflicts": len(final_output.conflicts),
                "artifact_dir": self.config.artifact_dir
            }
        )

        logger.info(f"Research complete in {duration:.1f} seconds")
        return result

    async def research_many(self, queries: List[str]) -> List[RunResult]:
        """
        Research multiple queries concurrently.

        Failed queries are dropped with a warning.
        """
        logger.info(f"Starting parallel research on {len(queries)} queries")

        tasks = [self.research(query) for query in queries]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        valid_results = [r for r in results if isinstance(r, RunResult)]
        for query, r in zip(queries, results):
            if isinstance(r, BaseException):
                logger.warning(f"Query failed: '{query}': {r}")

        logger.info(f"Parallel research complete: {len(valid_results)} succeeded")
        return valid_results

    def get_summary(self, result: RunResult) -> str:
        """Get a quick summary of results."""
        c = result.classification
        status_lines = "\n".join(
            f"- {thread_id}: {status}" for thread_id, status in result.statuses.items()
        )
        return f"""
Research Query: {result.query}
Run: {result.run_id}
Duration: {result.metadata.get('duration_seconds', 0):.1f}s
Classification: {c.complexity.value} {c.query_type.value}, {c.worker_count} workers
Findings: {result.metadata.get('num_findings', 0)}/{len(result.plan.threads)}
Format: {result.final_output.format.value}
Confidence: {result.final_output.confidence_level}

Threads:
{status_lines}
""".strip()
