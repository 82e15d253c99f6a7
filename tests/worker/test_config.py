"""Tests for WorkerConfig loading and saving."""

from __future__ import annotations

import dataclasses
import socket

import pytest
import yaml

from extworker.worker.config import TopicConfig, WorkerConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "EXTWORKER_BASE_URL",
        "EXTWORKER_USERNAME",
        "EXTWORKER_PASSWORD",
        "EXTWORKER_WORKER_ID",
        "EXTWORKER_WAIT_INTERVAL",
        "EXTWORKER_LOCK_DURATION",
        "EXTWORKER_REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(key, raising=False)


class TestWorkerConfigDefaults:
    """Test default config values."""

    def test_defaults(self):
        config = WorkerConfig()
        assert config.base_url == "http://localhost:8080/engine-rest"
        assert config.username == ""
        assert config.worker_id == socket.gethostname()
        assert config.wait_interval == 60.0
        assert config.lock_duration == 60.0
        assert config.async_response_timeout is None
        assert config.topics == ()

    def test_config_is_immutable(self):
        config = WorkerConfig(worker_id="w1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.wait_interval = 1.0  # type: ignore[misc]

    @pytest.mark.parametrize(
        "build",
        [
            lambda: WorkerConfig(worker_id=""),
            lambda: WorkerConfig(wait_interval=-1),
            lambda: WorkerConfig(lock_duration=0),
            lambda: WorkerConfig(request_timeout=0),
            lambda: TopicConfig("a", wait_interval=-5.0),
            lambda: TopicConfig(""),
            lambda: TopicConfig.from_dict({"topic": "a", "wait_interval": -5}),
        ],
    )
    def test_rejects_invalid_values(self, build):
        with pytest.raises(ValueError):
            build()

    def test_zero_topic_interval_is_allowed(self):
        assert TopicConfig("a", wait_interval=0).wait_interval == 0


class TestTopicOverrides:
    def test_topic_override_wins(self):
        config = WorkerConfig(
            worker_id="w1",
            wait_interval=60.0,
            topics=(TopicConfig("fast", wait_interval=1.0), TopicConfig("plain")),
        )
        assert config.wait_interval_for("fast") == 1.0
        assert config.wait_interval_for("plain") == 60.0
        assert config.wait_interval_for("unknown") == 60.0

    def test_topics_list_is_frozen_into_tuple(self):
        config = WorkerConfig(worker_id="w1", topics=[TopicConfig("a")])
        assert config.topics == (TopicConfig("a"),)


class TestWorkerConfigLoad:
    """Test loading config from file and environment."""

    def test_load_from_nonexistent_file_uses_defaults(self, tmp_path):
        config = WorkerConfig.load(config_path=tmp_path / "nonexistent.yaml")
        assert config.base_url == "http://localhost:8080/engine-rest"
        assert config.wait_interval == 60.0

    def test_load_from_yaml_file(self, tmp_path):
        config_file = tmp_path / "worker.yaml"
        config_file.write_text(
            yaml.safe_dump(
                {
                    "base_url": "http://camunda.internal:8080/engine-rest",
                    "username": "demo",
                    "password": "demo-pw",
                    "worker_id": "billing-1",
                    "wait_interval": 10,
                    "lock_duration": 120,
                    "async_response_timeout": 30000,
                    "use_priority": True,
                    "topics": [
                        {"topic": "charge-card", "wait_interval": 2},
                        "send-invoice",
                    ],
                }
            )
        )

        config = WorkerConfig.load(config_path=config_file)
        assert config.base_url == "http://camunda.internal:8080/engine-rest"
        assert config.username == "demo"
        assert config.password == "demo-pw"
        assert config.worker_id == "billing-1"
        assert config.wait_interval == 10.0
        assert config.lock_duration == 120.0
        assert config.async_response_timeout == 30000
        assert config.use_priority is True
        assert config.topics == (
            TopicConfig("charge-card", wait_interval=2.0),
            TopicConfig("send-invoice"),
        )

    def test_env_vars_override_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "worker.yaml"
        config_file.write_text(
            yaml.safe_dump({"base_url": "http://from-file:8080", "worker_id": "file-worker"})
        )

        monkeypatch.setenv("EXTWORKER_BASE_URL", "http://from-env:9000")
        monkeypatch.setenv("EXTWORKER_WAIT_INTERVAL", "15.0")
        monkeypatch.setenv("EXTWORKER_LOCK_DURATION", "90")
        monkeypatch.setenv("EXTWORKER_PASSWORD", "env-secret")

        config = WorkerConfig.load(config_path=config_file)
        assert config.base_url == "http://from-env:9000"
        assert config.worker_id == "file-worker"
        assert config.wait_interval == 15.0
        assert config.lock_duration == 90.0
        assert config.password == "env-secret"

    def test_keyword_overrides_win_over_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EXTWORKER_WORKER_ID", "env-worker")

        config = WorkerConfig.load(
            config_path=tmp_path / "nonexistent.yaml",
            worker_id="cli-worker",
            wait_interval=None,
        )
        assert config.worker_id == "cli-worker"
        assert config.wait_interval == 60.0

    def test_load_handles_malformed_yaml(self, tmp_path):
        config_file = tmp_path / "worker.yaml"
        config_file.write_text("this is: not: valid: yaml: [[[")

        # Should not raise, just use defaults
        config = WorkerConfig.load(config_path=config_file)
        assert config.base_url == "http://localhost:8080/engine-rest"

    def test_load_ignores_bad_values_in_file(self, tmp_path):
        config_file = tmp_path / "worker.yaml"
        config_file.write_text(
            yaml.safe_dump({"base_url": "http://partial:8080", "wait_interval": "soon"})
        )

        config = WorkerConfig.load(config_path=config_file)
        assert config.base_url == "http://localhost:8080/engine-rest"
        assert config.wait_interval == 60.0

    def test_load_ignores_negative_topic_interval(self, tmp_path):
        config_file = tmp_path / "worker.yaml"
        config_file.write_text(
            yaml.safe_dump({"wait_interval": 5, "topics": [{"topic": "a", "wait_interval": -5}]})
        )

        config = WorkerConfig.load(config_path=config_file)
        assert config.topics == ()
        assert config.wait_interval_for("a") == 60.0

    def test_partial_yaml_file(self, tmp_path):
        config_file = tmp_path / "worker.yaml"
        config_file.write_text(yaml.safe_dump({"wait_interval": 2.5}))

        config = WorkerConfig.load(config_path=config_file)
        assert config.wait_interval == 2.5
        # Other values should be defaults
        assert config.base_url == "http://localhost:8080/engine-rest"
        assert config.lock_duration == 60.0


class TestWorkerConfigSave:
    """Test saving config to file."""

    def test_save_creates_file_without_password(self, tmp_path):
        config = WorkerConfig(
            base_url="http://test:8080/engine-rest",
            password="top-secret",
            worker_id="w1",
            wait_interval=7.5,
        )
        config_file = tmp_path / "worker.yaml"
        config.save(config_path=config_file)

        assert config_file.exists()
        data = yaml.safe_load(config_file.read_text())
        assert data["base_url"] == "http://test:8080/engine-rest"
        assert data["wait_interval"] == 7.5
        assert "password" not in data

    def test_save_creates_parent_directories(self, tmp_path):
        config = WorkerConfig(worker_id="w1")
        config_file = tmp_path / "deep" / "nested" / "worker.yaml"
        config.save(config_path=config_file)

        assert config_file.exists()

    def test_roundtrip(self, tmp_path):
        config_file = tmp_path / "worker.yaml"

        original = WorkerConfig(
            base_url="http://roundtrip:8080/engine-rest",
            username="demo",
            worker_id="w-roundtrip",
            wait_interval=3.0,
            lock_duration=45.0,
            async_response_timeout=10000,
            topics=(TopicConfig("a", wait_interval=1.0), TopicConfig("b")),
        )
        original.save(config_path=config_file)

        loaded = WorkerConfig.load(config_path=config_file)
        assert loaded == original
