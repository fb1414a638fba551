"""Process start-up wiring.

Call :func:`build_service` (or :func:`build_api`) once at start-up; the
codec key, stores and sinks are fixed for the lifetime of the process.
"""

import logging

from loan_tracker.api import LoanApi
from loan_tracker.audit import AuditTrail
from loan_tracker.codec import Codec
from loan_tracker.config import LoanTrackerConfig
from loan_tracker.exceptions import ConfigurationError
from loan_tracker.identity import IdentityVerifier, StaticUserDirectory, UserDirectory
from loan_tracker.notifications import NotificationDispatcher
from loan_tracker.service import LoanService
from loan_tracker.store.memory import InMemoryAuditStore, InMemoryLoanStore
from loan_tracker.store.repository import LoanRepository

logger = logging.getLogger(__name__)


def build_notifier(config: LoanTrackerConfig) -> NotificationDispatcher:
    """Dispatcher with the sink selected by ``notification_sink``."""
    if config.notification_sink == "none":
        return NotificationDispatcher()
    if config.notification_sink == "console":
        from loan_tracker.sinks.console import ConsoleSink

        return NotificationDispatcher([ConsoleSink(pretty=False)])
    if config.notification_sink == "kafka":
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        return NotificationDispatcher([KafkaNotificationSink(config.kafka)])
    raise ConfigurationError(f"Unknown notification sink: {config.notification_sink}")


def build_service(
    config: LoanTrackerConfig,
    users: UserDirectory | None = None,
    init_schema: bool = False,
) -> LoanService:
    """Construct a :class:`LoanService` from configuration.

    Parameters
    ----------
    config : LoanTrackerConfig
        Loaded configuration.
    users : UserDirectory | None
        Display-name lookup (default: empty static directory).
    init_schema : bool
        Create PostgreSQL tables when using the postgres backend.
    """
    codec = Codec.from_config(config.encryption, production=config.is_production)

    if config.storage_backend == "memory":
        loan_store = InMemoryLoanStore()
        audit_store = InMemoryAuditStore()
    elif config.storage_backend == "postgres":
        from loan_tracker.store.postgres import PostgresAuditStore, PostgresLoanStore

        loan_store = PostgresLoanStore(config.postgres.connection_string)
        if init_schema:
            loan_store.create_schema()
        audit_store = PostgresAuditStore(config.postgres.connection_string)
    else:
        raise ConfigurationError(f"Unknown storage backend: {config.storage_backend}")

    logger.info(
        "Loan service ready: storage=%s, notifications=%s, environment=%s",
        config.storage_backend,
        config.notification_sink,
        config.environment,
    )
    return LoanService(
        repository=LoanRepository(loan_store, codec),
        audit=AuditTrail(audit_store),
        notifier=build_notifier(config),
        users=users or StaticUserDirectory(),
    )


def build_api(
    config: LoanTrackerConfig,
    identity: IdentityVerifier,
    users: UserDirectory | None = None,
) -> LoanApi:
    """Construct the request boundary from configuration."""
    return LoanApi(build_service(config, users=users), identity)
