"""Settings loading, manager configuration and structured logging."""

from __future__ import annotations

import io
import json
import logging

import pytest
from pydantic import ValidationError

from HydraHTTP.adapter import HydraAdapter
from HydraHTTP.adapter.completion import CompletionHandler
from HydraHTTP.engine import EngineResponse, ParallelManager, ReturnCode
from HydraHTTP.env import RequestEnvironment
from HydraHTTP.errors import ConfigurationError, ConnectionFailedError
from HydraHTTP.logging_config import LOGGER_NAME, mask_sensitive_data, setup_logging
from HydraHTTP.settings import (
    AdapterSettings,
    EngineDefaults,
    LogFormat,
    LoggingSettings,
    ParallelSettings,
    get_settings,
    reset_settings,
)


@pytest.fixture
def restore_package_logger():
    logger = logging.getLogger(LOGGER_NAME)
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        if getattr(handler, "_hydra_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


class TestSettings:
    def test_defaults(self):
        settings = AdapterSettings()
        assert settings.parallel.max_concurrency == 200
        assert settings.engine.verify is True
        assert settings.engine.timeout_s is None
        assert settings.logging.format is LogFormat.CONSOLE

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("HYDRAHTTP_PARALLEL_MAX_CONCURRENCY", "16")
        monkeypatch.setenv("HYDRAHTTP_ENGINE_TIMEOUT_S", "2.5")
        monkeypatch.setenv("HYDRAHTTP_LOG_LEVEL", "debug")
        reset_settings()

        settings = get_settings()

        assert settings.parallel.max_concurrency == 16
        assert settings.engine.timeout_s == 2.5
        assert settings.logging.level == "DEBUG"
        assert settings.logging.level_number == logging.DEBUG
        assert get_settings() is settings

    def test_setup_parallel_manager_uses_settings(self, monkeypatch):
        monkeypatch.setenv("HYDRAHTTP_PARALLEL_MAX_CONCURRENCY", "12")
        reset_settings()
        assert HydraAdapter.setup_parallel_manager().max_concurrency == 12

    def test_setup_parallel_manager_overrides(self):
        manager = HydraAdapter.setup_parallel_manager(max_concurrency=10)
        assert isinstance(manager, ParallelManager)
        assert manager.max_concurrency == 10
        assert manager.thread_name_prefix == "hydra-http"

    def test_setup_parallel_manager_validates_overrides(self):
        with pytest.raises(ValidationError):
            HydraAdapter.setup_parallel_manager(max_concurrency=0)

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            LoggingSettings(level="chatty")

    def test_concurrency_bounds(self):
        with pytest.raises(ValidationError):
            ParallelSettings(max_concurrency=2048)

    def test_from_mapping_reports_configuration_error(self):
        with pytest.raises(ConfigurationError):
            AdapterSettings.from_mapping({"engine": {"max_redirects": -1}})

    def test_from_mapping_accepts_nested_values(self):
        settings = AdapterSettings.from_mapping({"engine": {"follow_redirects": True}})
        assert settings.engine == EngineDefaults(follow_redirects=True)


class TestLogging:
    def test_mask_sensitive_data_recurses(self):
        masked = mask_sensitive_data(
            {"headers": {"Authorization": "Bearer abc", "Accept": "*/*"}, "status": 200}
        )
        assert masked == {
            "headers": {"Authorization": "***masked***", "Accept": "*/*"},
            "status": 200,
        }

    def test_json_output_masks_credentials(self, restore_package_logger):
        stream = io.StringIO()
        setup_logging(LoggingSettings(level="DEBUG", format="json"), stream=stream)

        logging.getLogger("HydraHTTP.adapter.translator").info(
            "proxy configured",
            extra={"proxyuserpwd": "alice:s3cret", "url": "https://api.example.org/"},
        )

        payload = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert payload["message"] == "proxy configured"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "HydraHTTP.adapter.translator"
        assert payload["proxyuserpwd"] == "***masked***"
        assert payload["url"] == "https://api.example.org/"
        assert "alice:s3cret" not in stream.getvalue()

    def test_console_output_appends_context(self, restore_package_logger):
        stream = io.StringIO()
        setup_logging(LoggingSettings(level="INFO"), stream=stream)

        logging.getLogger("HydraHTTP.engine").warning("slow", extra={"keypasswd": "pw", "ms": 12})

        line = stream.getvalue().strip()
        assert line.startswith("WARNING HydraHTTP.engine: slow")
        assert "keypasswd=***masked***" in line
        assert "ms=12" in line

    def test_setup_logging_replaces_its_own_handler(self, restore_package_logger):
        setup_logging(LoggingSettings(), stream=io.StringIO())
        setup_logging(LoggingSettings(), stream=io.StringIO())
        managed = [
            h for h in restore_package_logger.handlers if getattr(h, "_hydra_managed", False)
        ]
        assert len(managed) == 1

    def test_connection_failure_is_logged(self, caplog):
        env = RequestEnvironment(method="get", url="https://down.example.org/")
        handler = CompletionHandler(env)

        with caplog.at_level(logging.WARNING, logger="HydraHTTP.adapter.completion"):
            with pytest.raises(ConnectionFailedError):
                handler(EngineResponse.failure(ReturnCode.COULDNT_RESOLVE_HOST))

        records = [r for r in caplog.records if r.getMessage() == "connection failed"]
        assert len(records) == 1
        assert records[0].return_code == "couldnt_resolve_host"
        assert records[0].url == "https://down.example.org/"
