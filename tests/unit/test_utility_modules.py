"""
Unit tests for utility modules.

Tests for error_handling, advanced_logging and settings_loader.
"""

import pytest
from unittest.mock import Mock
from structlog.testing import capture_logs

from pekclient.config.settings_loader import ConfigManager, Settings
from pekclient.utils.advanced_logging import LogContext, PerformanceLogger
from pekclient.utils.error_handling import (
    ConnectionFailedError,
    PekClientError,
    PekError,
    RemoteError,
    RetryConfig,
    TaskStateError,
    retry_async,
)


@pytest.fixture
def fresh_config():
    """Reset the configuration singleton around a test."""
    ConfigManager._settings = None
    yield ConfigManager
    ConfigManager._settings = None


@pytest.mark.unit
class TestErrorHandling:
    """Test error handling utilities."""

    def test_error_hierarchy(self):
        assert issubclass(RemoteError, PekClientError)
        assert issubclass(TaskStateError, PekError)

    def test_error_to_dict(self):
        """Test errors serialize for logging."""
        error = RemoteError("Unknown task", details={"event": "kill-task"})

        data = error.to_dict()

        assert data["error_type"] == "RemoteError"
        assert data["error_code"] == "RemoteError"
        assert data["message"] == "Unknown task"
        assert data["details"] == {"event": "kill-task"}
        assert str(error) == "Unknown task"

    def test_custom_error_code(self):
        assert PekError("x", error_code="E42").error_code == "E42"

    @pytest.mark.asyncio
    async def test_retry_succeeds_after_failures(self):
        """Test retriable errors are retried."""
        calls = []

        @retry_async(RetryConfig(max_attempts=3, initial_delay=0.0, jitter=False))
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "connected"

        assert await flaky() == "connected"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retry_exhausted(self):
        calls = []

        @retry_async(max_attempts=2, initial_delay=0.0)
        async def down():
            calls.append(1)
            raise ConnectionFailedError("refused")

        with pytest.raises(ConnectionFailedError):
            await down()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_non_retriable_error(self):
        """Test other errors propagate immediately."""
        calls = []

        @retry_async(max_attempts=5, initial_delay=0.0)
        async def broken():
            calls.append(1)
            raise RemoteError("refused")

        with pytest.raises(RemoteError):
            await broken()
        assert len(calls) == 1


@pytest.mark.unit
class TestAdvancedLogging:
    """Test advanced logging utilities."""

    def test_task_context(self):
        """Test the task id is bound only inside the context."""
        assert LogContext.get_task_id() is None

        with LogContext.task_context("task-1"):
            assert LogContext.get_task_id() == "task-1"
            with LogContext.task_context("task-2"):
                assert LogContext.get_task_id() == "task-2"
            assert LogContext.get_task_id() == "task-1"

        assert LogContext.get_task_id() is None

    def test_set_and_clear(self):
        LogContext.set_task_id("task-3")
        assert LogContext.get_task_id() == "task-3"
        LogContext.clear_task_id()
        assert LogContext.get_task_id() is None

    def test_performance_logger_success(self):
        logger = Mock()

        with PerformanceLogger("request", logger=logger, event_name="info") as perf:
            pass

        logger.debug.assert_called_once()
        args, kwargs = logger.debug.call_args
        assert args == ("operation_completed",)
        assert kwargs["operation"] == "request"
        assert kwargs["event_name"] == "info"
        assert perf.elapsed_time >= 0.0

    def test_performance_logger_failure(self):
        """Test failures are logged and re-raised."""
        logger = Mock()

        with pytest.raises(RemoteError):
            with PerformanceLogger("request", logger=logger, event_name="pause-task"):
                raise RemoteError("refused")

        kwargs = logger.warning.call_args.kwargs
        assert kwargs["error"] == "refused"
        assert kwargs["error_type"] == "RemoteError"

    def test_partial_result_drop_is_logged(self, client, fake_connection):
        task = client.create_task()

        with capture_logs() as logs:
            fake_connection.push(task.id, "not json")

        assert any(entry["event"] == "partial_result_dropped" for entry in logs)


@pytest.mark.unit
class TestSettingsLoader:
    """Test configuration loading."""

    def test_defaults(self):
        settings = Settings()

        assert settings.connection.url == "http://localhost:3347"
        assert settings.connection.request_timeout == 30.0
        assert settings.connection.retry.max_attempts == 3
        assert settings.cache.backend == "memory"

    def test_load_yaml_with_env_substitution(self, fresh_config, tmp_path, monkeypatch):
        """Test ${VAR} and ${VAR:default} substitution."""
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(
            "connection:\n"
            "  url: ${PEK_TEST_URL}\n"
            "  request_timeout: 5\n"
            "cache:\n"
            "  backend: ${PEK_TEST_BACKEND:redis}\n"
            "  ttl: 0\n"
        )
        monkeypatch.setenv("PEK_TEST_URL", "http://cluster:4000")
        monkeypatch.delenv("PEK_TEST_BACKEND", raising=False)

        settings = fresh_config.load_config(str(config_file))

        assert settings.connection.url == "http://cluster:4000"
        assert settings.connection.request_timeout == 5.0
        assert settings.cache.backend == "redis"
        assert settings.cache.ttl == 0
        assert fresh_config.get_settings() is settings

    def test_missing_explicit_file(self, fresh_config, tmp_path):
        with pytest.raises(FileNotFoundError):
            fresh_config.load_config(str(tmp_path / "missing.yaml"))

    def test_defaults_without_file(self, fresh_config, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PEK_CONFIG_PATH", str(tmp_path / "none.yaml"))
        monkeypatch.setenv("HOME", str(tmp_path))

        settings = fresh_config.load_config()

        assert settings == Settings()

    def test_invalid_values(self, fresh_config, tmp_path):
        """Test validation errors are reported as ValueError."""
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("cache:\n  backend: memcached\n")

        with pytest.raises(ValueError):
            fresh_config.load_config(str(config_file))

    def test_invalid_transport(self, fresh_config, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("connection:\n  transports: [carrier-pigeon]\n")

        with pytest.raises(ValueError):
            fresh_config.load_config(str(config_file))

    def test_reload(self, fresh_config, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("client:\n  name: first\n")
        assert fresh_config.load_config(str(config_file)).client.name == "first"

        config_file.write_text("client:\n  name: second\n")
        assert fresh_config.load_config(str(config_file)).client.name == "first"
        assert fresh_config.reload_config(str(config_file)).client.name == "second"
