"""
Unit tests for configuration loading and the command line entry point.

Run with: pytest tests/test_config.py -v
"""

import pytest

from fanout_research import __main__ as cli
from fanout_research.config import ResearchConfig
from fanout_research.orchestrator import ResearchOrchestrator


class TestResearchConfig:
    """Defaults, environment loading and validation."""

    def test_defaults(self):
        config = ResearchConfig()
        assert config.search_provider == "duckduckgo"
        assert config.artifact_dir is None
        assert config.max_deepening_rounds == 3
        assert config.max_retries == 2
        assert config.worker_timeout_seconds == 120.0
        assert config.run_deadline_seconds == 180.0
        config.validate()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RESEARCH_SEARCH_PROVIDER", "serper")
        monkeypatch.setenv("RESEARCH_ARTIFACT_DIR", str(tmp_path))
        monkeypatch.setenv("RESEARCH_MAX_DEEPENING_ROUNDS", "1")
        monkeypatch.setenv("RESEARCH_MAX_RETRIES", "4")
        monkeypatch.setenv("RESEARCH_WORKER_TIMEOUT", "2.5")
        monkeypatch.setenv("RESEARCH_LOG_LEVEL", "DEBUG")

        config = ResearchConfig.from_env(str(tmp_path / "absent.env"))

        assert config.search_provider == "serper"
        assert config.artifact_dir == str(tmp_path)
        assert config.max_deepening_rounds == 1
        assert config.max_retries == 4
        assert config.worker_timeout_seconds == 2.5
        assert config.log_level == "DEBUG"

    def test_empty_artifact_dir_means_in_memory(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RESEARCH_ARTIFACT_DIR", "")
        config = ResearchConfig.from_env(str(tmp_path / "absent.env"))
        assert config.artifact_dir is None

    @pytest.mark.parametrize("overrides", [
        {"max_deepening_rounds": -1},
        {"max_retries": -1},
        {"min_sources": 0},
        {"worker_timeout_seconds": 0},
        {"run_deadline_seconds": -5},
        {"search_provider": "bing"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ResearchConfig(**overrides).validate()

    def test_zero_deepening_rounds_is_valid(self):
        ResearchConfig(max_deepening_rounds=0).validate()


class TestCommandLine:
    """python -m fanout_research."""

    def test_parser(self):
        args = cli.build_parser().parse_args(
            ["What is Redis?", "--provider", "tavily", "--artifacts", "runs"]
        )
        assert args.query == "What is Redis?"
        assert args.provider == "tavily"
        assert args.artifacts == "runs"
        assert args.log_level is None

    def test_unknown_provider_is_a_usage_error(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["q", "--provider", "bing"])

    def test_blank_query_exits_with_usage_code(self, monkeypatch, fake_tools):
        monkeypatch.setattr(
            cli, "ResearchOrchestrator",
            lambda config: ResearchOrchestrator(config, tools=fake_tools)
        )
        assert cli.main(["   "]) == 2

    def test_prints_summary_and_body(self, monkeypatch, fake_tools, tmp_path, capsys):
        monkeypatch.setenv("RESEARCH_WORKER_TIMEOUT", "5")
        monkeypatch.setenv("RESEARCH_RUN_DEADLINE", "10")
        monkeypatch.setattr(
            cli, "ResearchOrchestrator",
            lambda config: ResearchOrchestrator(config, tools=fake_tools)
        )

        code = cli.main(["What is Redis?", "--artifacts", str(tmp_path)])

        out = capsys.readouterr().out
        assert code == 0
        assert "Research Query: What is Redis?" in out
        assert "# Research Brief: What is Redis?" in out
        assert f"Artifacts saved under {tmp_path}/run-" in out
        assert len(list(tmp_path.glob("run-*"))) == 1
