"""Tests for config and logging."""

import json
import logging
import os
import sys
from unittest.mock import patch

from loan_tracker.config import EncryptionConfig, KafkaConfig, LoanTrackerConfig, PostgresConfig
from loan_tracker.logging import JsonFormatter, get_logger, setup_logging


class TestKafkaConfig:
    """Tests for KafkaConfig."""

    def test_default_values(self) -> None:
        config = KafkaConfig()

        assert config.bootstrap_servers == "localhost:9092"
        assert config.acks == "all"
        assert config.notifications_topic == "loans.notifications"

    def test_to_dict(self) -> None:
        """Test conversion to confluent-kafka config dict."""
        config = KafkaConfig(bootstrap_servers="kafka:9092", acks="1", linger_ms=10, retries=5)

        result = config.to_dict()

        assert result == {
            "bootstrap.servers": "kafka:9092",
            "acks": "1",
            "linger.ms": 10,
            "retries": 5,
        }


class TestPostgresConfig:
    """Tests for PostgresConfig."""

    def test_connection_string(self) -> None:
        config = PostgresConfig(host="db", port=5433, database="ledger", user="app", password="secret")

        assert config.connection_string == "postgresql://app:secret@db:5433/ledger"

    def test_default_database(self) -> None:
        assert PostgresConfig().database == "loans"


class TestLoanTrackerConfig:
    """Tests for LoanTrackerConfig."""

    def test_default_values(self) -> None:
        config = LoanTrackerConfig()

        assert config.environment == "development"
        assert config.storage_backend == "memory"
        assert config.notification_sink == "none"
        assert config.encryption.key is None
        assert config.encryption.allow_insecure_dev_key is False
        assert config.is_production is False

    def test_is_production_case_insensitive(self) -> None:
        assert LoanTrackerConfig(environment="Production").is_production is True

    def test_from_env_default(self) -> None:
        """Test creating config from an empty environment."""
        with patch.dict(os.environ, {}, clear=True):
            config = LoanTrackerConfig.from_env()

        assert config.encryption == EncryptionConfig()
        assert config.kafka.bootstrap_servers == "localhost:9092"
        assert config.postgres.host == "localhost"
        assert config.log_level == "INFO"

    def test_from_env_custom(self) -> None:
        """Test creating config from custom environment variables."""
        env_vars = {
            "LOAN_TRACKER_ENCRYPTION_KEY": "a" * 64,
            "LOAN_TRACKER_ALLOW_DEV_KEY": "TRUE",
            "LOAN_TRACKER_ENV": "production",
            "STORAGE_BACKEND": "postgres",
            "NOTIFICATION_SINK": "kafka",
            "POSTGRES_HOST": "db.example.com",
            "POSTGRES_PORT": "6543",
            "KAFKA_BOOTSTRAP_SERVERS": "kafka-cluster:9092",
            "NOTIFICATIONS_TOPIC": "alerts",
            "LOG_LEVEL": "DEBUG",
            "LOG_FORMAT": "json",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            config = LoanTrackerConfig.from_env()

        assert config.encryption.key == "a" * 64
        assert config.encryption.allow_insecure_dev_key is True
        assert config.is_production is True
        assert config.storage_backend == "postgres"
        assert config.notification_sink == "kafka"
        assert config.postgres.host == "db.example.com"
        assert config.postgres.port == 6543
        assert config.kafka.bootstrap_servers == "kafka-cluster:9092"
        assert config.kafka.notifications_topic == "alerts"
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_from_env_blank_key_is_none(self) -> None:
        with patch.dict(os.environ, {"LOAN_TRACKER_ENCRYPTION_KEY": ""}, clear=True):
            config = LoanTrackerConfig.from_env()

        assert config.encryption.key is None


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_default(self) -> None:
        setup_logging()

        assert logging.getLogger("loan_tracker").level == logging.INFO

    def test_setup_logging_invalid_level(self) -> None:
        """Test logging with invalid level defaults to INFO."""
        setup_logging(level="INVALID")

        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_json_format(self) -> None:
        setup_logging(format_type="json")

        handlers = logging.getLogger().handlers
        assert any(isinstance(h.formatter, JsonFormatter) for h in handlers)

    def test_setup_logging_replaces_handlers(self) -> None:
        logger = logging.getLogger()
        logger.addHandler(logging.StreamHandler())
        logger.addHandler(logging.StreamHandler())

        setup_logging()

        assert len(logger.handlers) == 1

    def test_external_loggers_quieted(self) -> None:
        setup_logging(level="DEBUG")

        assert logging.getLogger("confluent_kafka").level == logging.WARNING
        assert logging.getLogger("psycopg").level == logging.WARNING
        assert logging.getLogger("faker").level == logging.WARNING


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **kwargs: object) -> logging.LogRecord:
        record = logging.LogRecord(
            name="loan_tracker.service",
            level=logging.INFO,
            pathname="/path/to/file.py",
            lineno=42,
            msg="Applied %s",
            args=("payment",),
            exc_info=kwargs.pop("exc_info", None),
        )
        for key, value in kwargs.items():
            setattr(record, key, value)
        return record

    def test_format_basic(self) -> None:
        data = json.loads(JsonFormatter().format(self._record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "loan_tracker.service"
        assert data["message"] == "Applied payment"
        assert "timestamp" in data

    def test_format_lifts_context_fields(self) -> None:
        """Loan and actor ids passed via ``extra=`` become top-level keys."""
        data = json.loads(JsonFormatter().format(self._record(loan_id="loan-1", actor_id="u-1", version=3)))

        assert data["loan_id"] == "loan-1"
        assert data["actor_id"] == "u-1"
        assert data["version"] == 3
        assert "change_id" not in data

    def test_format_with_exception(self) -> None:
        try:
            raise ValueError("Test error")
        except ValueError:
            exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(self._record(exc_info=exc_info)))

        assert "ValueError" in data["exception"]


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger(self) -> None:
        logger = get_logger("loan_tracker.test")

        assert logger.name == "loan_tracker.test"
        assert logger is logging.getLogger("loan_tracker.test")
