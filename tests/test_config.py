"""Tests for environment-driven configuration."""

import os

import pytest

from coauthor_layout.config import LayoutConfig

ENV_VARS = (
    "COAUTHOR_LAYOUT_WORKER_THRESHOLD",
    "COAUTHOR_LAYOUT_TIMEOUT",
    "COAUTHOR_LAYOUT_USE_WORKER",
    "COAUTHOR_LAYOUT_CACHE_SIZE",
    "COAUTHOR_LAYOUT_COMPUTE_BUDGET",
)


@pytest.fixture
def clean_env(monkeypatch):
    # load_dotenv writes to os.environ; give each test a private copy
    monkeypatch.setattr(os, "environ", os.environ.copy())
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLayoutConfig:

    def test_defaults(self):
        config = LayoutConfig()
        assert config.worker_threshold == 150
        assert config.timeout_seconds == 30.0
        assert config.use_worker_thread is True
        assert config.cache_size == 20
        assert config.padding == 80.0
        assert config.compute_budget_seconds == 10.0

    def test_overlap_distance_by_size(self):
        config = LayoutConfig()
        assert config.overlap_min_distance(500) == 15.0
        assert config.overlap_min_distance(501) == 10.0

    def test_validation(self):
        with pytest.raises(ValueError):
            LayoutConfig(timeout_seconds=0)
        with pytest.raises(ValueError):
            LayoutConfig(cache_size=0)
        with pytest.raises(ValueError):
            LayoutConfig(worker_threshold=-1)
        with pytest.raises(ValueError):
            LayoutConfig(compute_budget_seconds=0)


class TestFromEnv:

    def test_unset_keeps_defaults(self, clean_env, tmp_path):
        config = LayoutConfig.from_env(str(tmp_path / "missing.env"))
        assert config == LayoutConfig()

    def test_reads_variables(self, clean_env, tmp_path):
        clean_env.setenv("COAUTHOR_LAYOUT_WORKER_THRESHOLD", "300")
        clean_env.setenv("COAUTHOR_LAYOUT_TIMEOUT", "12.5")
        clean_env.setenv("COAUTHOR_LAYOUT_USE_WORKER", "no")
        clean_env.setenv("COAUTHOR_LAYOUT_CACHE_SIZE", "5")
        clean_env.setenv("COAUTHOR_LAYOUT_COMPUTE_BUDGET", "4")

        config = LayoutConfig.from_env(str(tmp_path / "missing.env"))

        assert config.worker_threshold == 300
        assert config.timeout_seconds == 12.5
        assert config.use_worker_thread is False
        assert config.cache_size == 5
        assert config.compute_budget_seconds == 4.0

    def test_reads_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("COAUTHOR_LAYOUT_CACHE_SIZE=7\nCOAUTHOR_LAYOUT_USE_WORKER=true\n")

        config = LayoutConfig.from_env(str(env_file))

        assert config.cache_size == 7
        assert config.use_worker_thread is True

    def test_invalid_value_names_variable(self, clean_env, tmp_path):
        clean_env.setenv("COAUTHOR_LAYOUT_TIMEOUT", "soon")

        with pytest.raises(ValueError, match="COAUTHOR_LAYOUT_TIMEOUT"):
            LayoutConfig.from_env(str(tmp_path / "missing.env"))

    def test_invalid_boolean(self, clean_env, tmp_path):
        clean_env.setenv("COAUTHOR_LAYOUT_USE_WORKER", "maybe")

        with pytest.raises(ValueError, match="COAUTHOR_LAYOUT_USE_WORKER"):
            LayoutConfig.from_env(str(tmp_path / "missing.env"))
