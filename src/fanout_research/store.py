"""
Findings Store - the run's artifact namespace.

    run-{id}/
      plan                  # Classification + ThreadSpec list
      finding-{threadId}    # one per ThreadSpec, 0..N present
      final-output          # exactly one, produced last

Keys are assigned by the planner before any worker starts, so workers never
contend for a key and finding writes run concurrently. seal() waits for
writes already in flight, so nothing lands after the barrier. Every key is
write-once.
"""

import os
import re
import json
import uuid
import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .agents.planner import ResearchPlan
from .agents.researcher import Finding
from .agents.synthesizer import FinalOutput
from .errors import StorageError

logger = logging.getLogger(__name__)

PLAN_KEY = "plan"
FINAL_OUTPUT_KEY = "final-output"
FINDING_PREFIX = "finding-"

SAFE_KEY = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def new_run_id() -> str:
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:6]}"


@dataclass
class ArtifactEvent:
    """Emitted after each successful write: plan, finding or final-output."""
    kind: str
    run_id: str
    key: str
    location: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "run_id": self.run_id,
            "key": self.key,
            "location": self.location,
            "timestamp": self.timestamp.isoformat()
        }


class FindingWriter:
    """Write handle scoped to a single thread id; the only thing a worker gets."""

    def __init__(self, store: "FindingsStore", thread_id: str):
        self._store = store
        self.thread_id = thread_id

    def write(self, finding: Finding) -> bool:
        return self._store.put(self.thread_id, finding)

    def __repr__(self) -> str:
        return f"FindingWriter(run='{self._store.run_id}', thread='{self.thread_id}')"


class FindingsStore(ABC):
    """
    Keyed, write-once artifact space for one run.

    Listeners subscribed with subscribe() are called synchronously after each
    write, possibly from a worker thread.
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or new_run_id()
        if not SAFE_KEY.match(self.run_id):
            raise StorageError(f"Invalid run id: {self.run_id!r}")
        self._listeners: List[Callable[[ArtifactEvent], None]] = []
        self._sealed = False
        self._writes = threading.Condition()
        self._in_flight = 0

    # Subscriptions
    def subscribe(self, listener: Callable[[ArtifactEvent], None]) -> None:
        self._listeners.append(listener)

    def _emit(self, kind: str, key: str, location: Optional[str] = None) -> None:
        event = ArtifactEvent(kind=kind, run_id=self.run_id, key=key, location=location)
        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Artifact listener failed for {kind} '{key}': {e}")

    # Plan
    def write_plan(self, plan: ResearchPlan) -> None:
        if self._read_plan() is not None:
            raise StorageError(f"Plan already written for run {self.run_id}")
        location = self._write_plan(plan.to_dict())
        logger.info(f"Run {self.run_id}: plan written ({len(plan.threads)} threads)")
        self._emit("plan", PLAN_KEY, location)

    def read_plan(self) -> Optional[ResearchPlan]:
        data = self._read_plan()
        return ResearchPlan.from_dict(data) if data is not None else None

    # Findings
    def writer(self, thread_id: str) -> FindingWriter:
        self._check_key(thread_id)
        return FindingWriter(self, thread_id)

    def put(self, thread_id: str, finding: Finding) -> bool:
        """
        Store a finding under its thread id.

        Returns:
            True when written, False when dropped because the store is sealed

        Raises:
            StorageError: on key mismatch, a second write, or an I/O failure
        """
        self._check_key(thread_id)
        if finding.thread_id != thread_id:
            raise StorageError(
                f"Finding for '{finding.thread_id}' cannot be written under '{thread_id}'"
            )
        with self._writes:
            if self._sealed:
                logger.warning(
                    f"Run {self.run_id}: dropping late finding for '{thread_id}' (store sealed)"
                )
                return False
            self._in_flight += 1

        try:
            if self.exists(thread_id):
                raise StorageError(f"Finding for '{thread_id}' already written")
            location = self._write_finding(thread_id, finding.to_dict())
        finally:
            with self._writes:
                self._in_flight -= 1
                self._writes.notify_all()

        logger.info(f"Run {self.run_id}: finding written for '{thread_id}'")
        self._emit("finding", thread_id, location)
        return True

    def get(self, thread_id: str) -> Optional[Finding]:
        data = self._read_finding(thread_id)
        return Finding.from_dict(data) if data is not None else None

    def exists(self, thread_id: str) -> bool:
        return thread_id in self.thread_ids()

    @abstractmethod
    def thread_ids(self) -> List[str]:
        """Thread ids with a finding, in no particular order."""
        pass

    def seal(self) -> None:
        """Close the store to finding writes; waits for a write already in progress."""
        with self._writes:
            self._sealed = True
            self._writes.wait_for(lambda: self._in_flight == 0)
        logger.debug(f"Run {self.run_id}: store sealed")

    @property
    def sealed(self) -> bool:
        return self._sealed

    # Final output
    def write_final_output(self, output: FinalOutput) -> None:
        if self._read_final() is not None:
            raise StorageError(f"Final output already written for run {self.run_id}")
        location = self._write_final(output.to_dict(), output.body)
        logger.info(f"Run {self.run_id}: final output written ({output.format.value})")
        self._emit("final-output", FINAL_OUTPUT_KEY, location)

    def read_final_output(self) -> Optional[FinalOutput]:
        data = self._read_final()
        return FinalOutput.from_dict(data) if data is not None else None

    @staticmethod
    def _check_key(thread_id: str) -> None:
        if not isinstance(thread_id, str) or not SAFE_KEY.match(thread_id):
            raise StorageError(f"Invalid thread id: {thread_id!r}")

    # Backend hooks; each returns a location string (or None)
    @abstractmethod
    def _write_plan(self, data: dict) -> Optional[str]:
        pass

    @abstractmethod
    def _read_plan(self) -> Optional[dict]:
        pass

    @abstractmethod
    def _write_finding(self, thread_id: str, data: dict) -> Optional[str]:
        pass

    @abstractmethod
    def _read_finding(self, thread_id: str) -> Optional[dict]:
        pass

    @abstractmethod
    def _write_final(self, data: dict, markdown: str) -> Optional[str]:
        pass

    @abstractmethod
    def _read_final(self) -> Optional[dict]:
        pass


class InMemoryFindingsStore(FindingsStore):
    """
    Store backed by plain dicts.

    Artifacts are kept as serialized dicts so later mutation of the objects
    that were written cannot change what the store holds.
    """

    def __init__(self, run_id: Optional[str] = None):
        super().__init__(run_id)
        self._plan: Optional[dict] = None
        self._findings: Dict[str, dict] = {}
        self._final: Optional[dict] = None

    def thread_ids(self) -> List[str]:
        return list(self._findings.keys())

    def _write_plan(self, data: dict) -> Optional[str]:
        self._plan = json.loads(json.dumps(data))
        return None

    def _read_plan(self) -> Optional[dict]:
        return self._plan

    def _write_finding(self, thread_id: str, data: dict) -> Optional[str]:
        self._findings[thread_id] = json.loads(json.dumps(data))
        return None

    def _read_finding(self, thread_id: str) -> Optional[dict]:
        return self._findings.get(thread_id)

    def _write_final(self, data: dict, markdown: str) -> Optional[str]:
        self._final = json.loads(json.dumps(data))
        return None

    def _read_final(self) -> Optional[dict]:
        return self._final


class DirectoryFindingsStore(FindingsStore):
    """
    Store backed by a run-{id}/ directory of JSON files.

    Usage:
        store = DirectoryFindingsStore("./runs")
        store.write_plan(plan)
    """

    def __init__(self, root: str, run_id: Optional[str] = None):
        super().__init__(run_id)
        self.root = Path(root)
        self.run_dir = self.root / f"run-{self.run_id}"
        try:
            self.run_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create run directory {self.run_dir}: {e}") from e

        logger.info(f"Run {self.run_id}: artifacts in {self.run_dir}")

    def thread_ids(self) -> List[str]:
        try:
            names = os.listdir(self.run_dir)
        except OSError as e:
            raise StorageError(f"Cannot list {self.run_dir}: {e}") from e
        return [
            name[len(FINDING_PREFIX):]
            for name in names
            if name.startswith(FINDING_PREFIX) and not name.endswith(".tmp")
        ]

    def _write_json(self, name: str, data: dict) -> str:
        path = self.run_dir / name
        try:
            fd, tmp = tempfile.mkstemp(dir=self.run_dir, prefix=f".{name}.", suffix=".tmp")
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
        return str(path)

    def _read_json(self, name: str) -> Optional[dict]:
        path = self.run_dir / name
        if not path.exists():
            return None
        try:
            with open(path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def _write_plan(self, data: dict) -> Optional[str]:
        return self._write_json(PLAN_KEY, data)

    def _read_plan(self) -> Optional[dict]:
        return self._read_json(PLAN_KEY)

    def _write_finding(self, thread_id: str, data: dict) -> Optional[str]:
        return self._write_json(f"{FINDING_PREFIX}{thread_id}", data)

    def _read_finding(self, thread_id: str) -> Optional[dict]:
        return self._read_json(f"{FINDING_PREFIX}{thread_id}")

    def _write_final(self, data: dict, markdown: str) -> Optional[str]:
        location = self._write_json(FINAL_OUTPUT_KEY, data)
        try:
            (self.run_dir / f"{FINAL_OUTPUT_KEY}.md").write_text(markdown)
        except OSError as e:
            raise StorageError(f"Cannot write markdown report: {e}") from e
        return location

    def _read_final(self) -> Optional[dict]:
        return self._read_json(FINAL_OUTPUT_KEY)


def open_store(artifact_dir: Optional[str] = None, run_id: Optional[str] = None) -> FindingsStore:
    """Directory store when a directory is configured, in-memory otherwise."""
    if artifact_dir:
        return DirectoryFindingsStore(artifact_dir, run_id)
    return InMemoryFindingsStore(run_id)
