"""Configuration management for loan-tracker."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class EncryptionConfig:
    """Encryption key configuration.

    ``key`` may be 64 hex characters, base64 of 32 bytes, or any other
    string (hashed with SHA-256). ``allow_insecure_dev_key`` permits a
    fixed development key when no key is provided outside production.
    """

    key: str | None = None
    allow_insecure_dev_key: bool = False


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    linger_ms: int = 5
    retries: int = 3
    notifications_topic: str = "loans.notifications"

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "retries": self.retries,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "loans"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class LoanTrackerConfig:
    """Main configuration for loan-tracker."""

    environment: str = "development"
    storage_backend: str = "memory"  # memory, postgres
    notification_sink: str = "none"  # none, console, kafka
    log_level: str = "INFO"
    log_format: str = "standard"
    encryption: EncryptionConfig = field(default_factory=EncryptionConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)

    @property
    def is_production(self) -> bool:
        """Whether running in production."""
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "LoanTrackerConfig":
        """Create config from environment variables."""
        import os

        encryption = EncryptionConfig(
            key=os.getenv("LOAN_TRACKER_ENCRYPTION_KEY") or None,
            allow_insecure_dev_key=os.getenv("LOAN_TRACKER_ALLOW_DEV_KEY", "false").lower() == "true",
        )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            database=os.getenv("POSTGRES_DB", "loans"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
            notifications_topic=os.getenv("NOTIFICATIONS_TOPIC", "loans.notifications"),
        )

        return cls(
            environment=os.getenv("LOAN_TRACKER_ENV", "development"),
            storage_backend=os.getenv("STORAGE_BACKEND", "memory"),
            notification_sink=os.getenv("NOTIFICATION_SINK", "none"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
            encryption=encryption,
            postgres=postgres,
            kafka=kafka,
        )
