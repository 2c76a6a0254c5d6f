"""Shared fixtures for the test suite."""

import pytest

from fanout_research.agents.classifier import QueryClassifier
from fanout_research.agents.planner import PlannerAgent
from fanout_research.config import ResearchConfig
from fanout_research.store import InMemoryFindingsStore
from fanout_research.tools.capabilities import CapabilityTable

from fakes import FakeSearchTool


@pytest.fixture
def fast_config():
    """Config with no retry back-off and short time bounds."""
    return ResearchConfig(
        retry_delay_seconds=0,
        worker_timeout_seconds=5,
        run_deadline_seconds=10
    )


@pytest.fixture
def capability_table():
    return CapabilityTable()


@pytest.fixture
def fake_tools(capability_table):
    """One independent fake backend per capability."""
    return {name: FakeSearchTool() for name in capability_table.capabilities}


@pytest.fixture
def memory_store():
    return InMemoryFindingsStore(run_id="test-run")


@pytest.fixture
def make_plan(capability_table):
    """Classify and plan a query in one step."""
    classifier = QueryClassifier(capability_table)
    planner = PlannerAgent(capability_table)

    def _make(query):
        return planner.plan(classifier.classify(query))

    return _make
