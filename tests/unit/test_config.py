"""
Unit tests for ServerConfig.
"""

import os

import pytest

from offloadapi.config import ServerConfig


class TestServerConfig:
    """Tests for defaults, environment loading and validation."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.port == 8080
        assert config.default_pool_size == 20
        assert config.worker_pool_size == 10
        assert config.worker_pool_name == "worker-pool"
        assert config.event_loop_threads == 2 * (os.cpu_count() or 1)
        assert config.max_execute_time == 60.0
        config.validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OFFLOAD_PORT", "9090")
        monkeypatch.setenv("OFFLOAD_EVENT_LOOPS", "3")
        monkeypatch.setenv("OFFLOAD_WORKER_POOL_NAME", "reports")
        monkeypatch.setenv("OFFLOAD_WORKER_POOL_SIZE", "32")
        monkeypatch.setenv("OFFLOAD_LATENCY_SCALE", "0")
        monkeypatch.setenv("OFFLOAD_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.port == 9090
        assert config.event_loop_threads == 3
        assert config.worker_pool_name == "reports"
        assert config.worker_pool_size == 32
        assert config.latency_scale == 0.0
        assert config.log_format == "json"

    def test_from_env_invalid_number(self, monkeypatch):
        monkeypatch.setenv("OFFLOAD_PORT", "eighty")

        with pytest.raises(ValueError):
            ServerConfig.from_env()

    @pytest.mark.parametrize("overrides", [
        {"port": 70000},
        {"port": -1},
        {"event_loop_threads": 0},
        {"default_pool_size": 0},
        {"worker_pool_size": 0},
        {"worker_pool_name": ""},
        {"task_queue_size": 0},
        {"buffer_size": 512},
        {"timeout": 0},
        {"keep_alive_timeout": 0},
        {"max_execute_time": 0},
        {"latency_scale": -1},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()

    def test_port_zero_allowed(self):
        ServerConfig(port=0).validate()
