"""
Unit tests for the planner.

Run with: pytest tests/test_planner.py -v
"""

import dataclasses

import pytest

from fanout_research.agents.planner import (
    PlannerAgent,
    ResearchPlan,
    ThreadSpec,
    as_question,
    extract_subject,
    slugify,
)
from fanout_research.tools.capabilities import (
    CODE_CONTEXT,
    LIVE_SEARCH,
    SEMANTIC_SEARCH,
    URL_FETCH,
)


class TestPlanShape:
    """Cardinality and identity of planned threads."""

    @pytest.mark.parametrize("query", [
        "What is Redis?",
        "Kafka vs Pulsar",
        "How does Kafka architecture affect market adoption",
        "Redis, Memcached, Hazelcast, Ignite, Aerospike, Couchbase, Etcd, Consul",
    ])
    def test_one_thread_per_worker_with_distinct_ids(self, make_plan, query):
        plan = make_plan(query)
        assert len(plan.threads) == plan.classification.worker_count
        assert len(set(plan.thread_ids)) == len(plan.threads)

    def test_thread_ids_are_numbered_slugs(self, make_plan):
        plan = make_plan("Kafka vs Pulsar")
        assert plan.thread_ids[:2] == ["t1-kafka", "t2-pulsar"]
        assert all(tid.startswith(f"t{i}-") for i, tid in enumerate(plan.thread_ids, 1))

    def test_every_thread_has_questions(self, make_plan):
        plan = make_plan("How does Kafka architecture affect market adoption")
        assert all(thread.questions for thread in plan.threads)

    def test_plan_is_deterministic(self, make_plan):
        query = "Compare Django and FastAPI for REST backends"
        assert make_plan(query).to_dict() == make_plan(query).to_dict()

    def test_thread_spec_is_frozen(self, make_plan):
        thread = make_plan("What is Redis?").threads[0]
        with pytest.raises(dataclasses.FrozenInstanceError):
            thread.focus = "something else"
        assert isinstance(thread.questions, tuple)


class TestDecomposition:
    """Facets first, then research angles."""

    def test_facets_become_threads_then_angles_fill(self, make_plan):
        plan = make_plan("Kafka vs Pulsar")
        focuses = [t.focus for t in plan.threads]
        assert focuses[:2] == ["Kafka", "Pulsar"]
        assert focuses[2] == "Kafka vs Pulsar: core concepts and architecture"
        assert focuses[3] == "Kafka vs Pulsar: definitions and background"

    def test_single_facet_uses_angles_for_query_type(self, make_plan):
        plan = make_plan("What is Redis?")
        assert [t.focus for t in plan.threads] == [
            "Redis: core concepts and architecture",
            "Redis: API and implementation details",
        ]
        assert plan.threads[0].questions[0] == "How does Redis work internally?"

    def test_hybrid_interleaves_angles(self, make_plan):
        plan = make_plan("How does Kafka architecture affect market adoption")
        angles = [t.focus.split(": ", 1)[1] for t in plan.threads]
        assert angles == [
            "core concepts and architecture",
            "definitions and background",
            "API and implementation details",
        ]

    def test_no_overflow_when_facets_fit(self, make_plan):
        assert make_plan("Kafka vs Pulsar").overflow is None


class TestOverflow:
    """More facets than workers."""

    def test_extra_facets_merge_round_robin(self, make_plan):
        plan = make_plan(
            "Redis, Memcached, Hazelcast, Ignite, Aerospike, Couchbase, Etcd, Consul"
        )
        assert len(plan.threads) == 6
        assert plan.overflow is not None
        assert plan.overflow.requested == 8
        assert plan.overflow.allowed == 6
        assert plan.overflow.exceeded_maximum is True
        assert plan.overflow.merged_questions == ["Etcd?", "Consul?"]
        assert plan.threads[0].questions[-1] == "Etcd?"
        assert plan.threads[1].questions[-1] == "Consul?"

    def test_overflow_is_logged(self, make_plan, caplog):
        with caplog.at_level("WARNING"):
            make_plan("Redis, Memcached, Hazelcast, Ignite, Aerospike, Couchbase, Etcd, Consul")
        assert "Plan overflow" in caplog.text


class TestCapabilityAssignment:
    """Primary and fallback capabilities come from the capability table."""

    def test_api_query_routes_to_code_context(self, make_plan):
        plan = make_plan("What is the Stripe API?")
        for thread in plan.threads:
            assert thread.primary_capability == CODE_CONTEXT
            assert thread.fallback_capabilities == (SEMANTIC_SEARCH, LIVE_SEARCH)

    def test_known_url_routes_to_fetch(self, make_plan):
        plan = make_plan("Summarize https://example.com/post")
        assert plan.threads[0].primary_capability == URL_FETCH
        assert plan.threads[0].fallback_capabilities == (SEMANTIC_SEARCH,)

    def test_conceptual_query_routes_to_semantic_search(self, make_plan):
        plan = make_plan("Tell me about penguins")
        assert plan.threads[0].primary_capability == SEMANTIC_SEARCH


class TestPlanRecord:
    """Serialization and rendering."""

    def test_dict_round_trip(self, make_plan):
        plan = make_plan("Redis, Memcached, Hazelcast, Ignite, Aerospike, Couchbase, Etcd, Consul")
        restored = ResearchPlan.from_dict(plan.to_dict())
        assert restored.threads == plan.threads
        assert restored.classification == plan.classification
        assert restored.overflow == plan.overflow

    def test_get_thread(self, make_plan):
        plan = make_plan("Kafka vs Pulsar")
        assert plan.get_thread("t2-pulsar").focus == "Pulsar"
        assert plan.get_thread("missing") is None

    def test_format_plan(self, make_plan):
        plan = make_plan("Kafka vs Pulsar")
        text = PlannerAgent().format_plan(plan)
        assert text.startswith("# Research Plan: Kafka vs Pulsar")
        for thread in plan.threads:
            assert thread.id in text

    def test_thread_spec_from_dict_defaults(self):
        spec = ThreadSpec.from_dict({
            "id": "t1-x",
            "focus": "x",
            "primary_capability": SEMANTIC_SEARCH
        })
        assert spec.questions == ()
        assert spec.fallback_capabilities == ()


class TestHelpers:
    """Text helpers used to phrase threads."""

    def test_extract_subject(self):
        assert extract_subject("What is the Stripe API?") == "Stripe API"
        assert extract_subject("Compare Kafka vs Pulsar") == "Kafka vs Pulsar"

    def test_slugify(self):
        assert slugify("Redis: core concepts and architecture") == "redis-core-concepts-and"
        assert slugify("???") == "thread"

    def test_as_question(self):
        assert as_question("pricing.") == "Pricing?"
        assert as_question("Is it fast?") == "Is it fast?"
