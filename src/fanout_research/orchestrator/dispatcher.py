"""
Dispatcher - Fans a plan out to one isolated worker per thread.

Each worker runs in its own OS thread on a private event loop, so a blocking
backend call in one worker never stalls another. Workers share nothing but
the findings store, where every worker owns a distinct key.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..agents.planner import ThreadSpec
from ..agents.researcher import ResearchWorker
from ..config import ResearchConfig
from ..errors import StorageError

logger = logging.getLogger(__name__)


class StatusKind(Enum):
    DONE = "done"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class TerminalStatus:
    """How a worker ended: Done, Failed(reason) or TimedOut."""
    kind: StatusKind
    reason: Optional[str] = None

    @classmethod
    def done(cls) -> "TerminalStatus":
        return cls(StatusKind.DONE)

    @classmethod
    def failed(cls, reason: str) -> "TerminalStatus":
        return cls(StatusKind.FAILED, reason)

    @classmethod
    def timed_out(cls, reason: str) -> "TerminalStatus":
        return cls(StatusKind.TIMED_OUT, reason)

    @property
    def ok(self) -> bool:
        return self.kind == StatusKind.DONE

    def __str__(self) -> str:
        if self.reason:
            return f"{self.kind.value}: {self.reason}"
        return self.kind.value

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: dict) -> "TerminalStatus":
        return cls(StatusKind(data["kind"]), data.get("reason"))


WorkerFactory = Callable[[ThreadSpec, Dict[str, Any], Any, ResearchConfig], Any]


class Dispatcher:
    """
    Launches exactly one worker per ThreadSpec and waits for all of them.

    A worker's failure never cancels or blocks its siblings. Only a
    StorageError escapes dispatch().

    Usage:
        dispatcher = Dispatcher(store, tools, config)
        statuses = await dispatcher.dispatch(plan.threads)
    """

    def __init__(
        self,
        store: Any,
        tools: Dict[str, Any],
        config: Optional[ResearchConfig] = None,
        worker_factory: Optional[WorkerFactory] = None
    ):
        self.store = store
        self.tools = tools
        self.config = config or ResearchConfig()
        self.worker_factory = worker_factory or ResearchWorker

    async def dispatch(self, thread_specs: List[ThreadSpec]) -> Dict[str, TerminalStatus]:
        """
        Run every thread to a terminal status.

        Returns:
            Terminal status per thread id, in the order of thread_specs

        Raises:
            StorageError: if any worker could not write its finding
        """
        if not thread_specs:
            return {}

        ids = [t.id for t in thread_specs]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate thread ids in dispatch: {ids}")

        logger.info(f"Dispatching {len(thread_specs)} workers")
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(
            max_workers=len(thread_specs),
            thread_name_prefix="research-worker"
        )

        futures = {}
        for thread in thread_specs:
            future = loop.run_in_executor(executor, self._run_worker, thread)
            future.add_done_callback(_consume_exception)
            futures[future] = thread.id

        results: Dict[str, TerminalStatus] = {}
        deadline = loop.time() + self.config.run_deadline_seconds
        pending = set(futures)

        try:
            while pending:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending,
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED
                )
                for future in done:
                    thread_id = futures[future]
                    results[thread_id] = self._status_for(thread_id, future)

            for future in pending:
                thread_id = futures[future]
                logger.warning(f"Worker {thread_id} still running at the run deadline")
                results[thread_id] = TerminalStatus.timed_out(
                    f"run deadline of {self.config.run_deadline_seconds}s elapsed"
                )
        finally:
            # Abandoned workers keep their thread until their own timeout fires
            executor.shutdown(wait=False)

        statuses = {thread_id: results[thread_id] for thread_id in ids}
        finished = sum(1 for s in statuses.values() if s.ok)
        logger.info(f"Dispatch complete: {finished}/{len(ids)} workers done")
        return statuses

    def _run_worker(self, thread: ThreadSpec) -> Any:
        """Thread body: one private event loop, bounded by the worker timeout."""
        writer = self.store.writer(thread.id)
        worker = self.worker_factory(thread, self.tools, writer, self.config)
        timeout = self.config.worker_timeout_seconds

        async def bounded():
            return await asyncio.wait_for(worker.run(), timeout=timeout)

        return asyncio.run(bounded())

    def _status_for(self, thread_id: str, future: "asyncio.Future") -> TerminalStatus:
        try:
            future.result()
        except StorageError:
            logger.error(f"Worker {thread_id} could not persist its finding")
            raise
        except asyncio.TimeoutError:
            logger.warning(
                f"Worker {thread_id} timed out after {self.config.worker_timeout_seconds}s"
            )
            return TerminalStatus.timed_out(
                f"worker exceeded {self.config.worker_timeout_seconds}s"
            )
        except Exception as e:
            logger.error(f"Worker {thread_id} failed: {e}")
            return TerminalStatus.failed(f"{type(e).__name__}: {e}")

        logger.debug(f"Worker {thread_id} done")
        return TerminalStatus.done()


def _consume_exception(future: "asyncio.Future") -> None:
    # Abandoned futures would otherwise log "exception was never retrieved"
    if not future.cancelled():
        future.exception()
