"""Kafka sink for publishing loan notifications."""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from loan_tracker.config import KafkaConfig
from loan_tracker.exceptions import SinkError
from loan_tracker.models.base import Notification
from loan_tracker.serialization import to_dict

logger = logging.getLogger(__name__)


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0
    start_time: float | None = None
    end_time: float | None = None

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0

    @property
    def throughput(self) -> float:
        """Calculate notifications per second sent."""
        if self.start_time is None or self.end_time is None:
            return 0.0
        duration = self.end_time - self.start_time
        return self.sent / duration if duration > 0 else 0.0


class KafkaNotificationSink:
    """Publish notifications to a Kafka topic, keyed by recipient."""

    def __init__(self, config: KafkaConfig | str) -> None:
        """Initialize Kafka sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Kafka configuration or bootstrap servers string.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.topic = config.notifications_topic
        self.producer = self._create_producer()
        self.stats = ProducerStats(start_time=time.time())

    def _create_producer(self) -> Producer:
        """Create Kafka producer with configuration."""
        return Producer(self.config.to_dict())

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        if err:
            self.stats.failed += 1
            logger.error("Delivery failed: %s", err)
        else:
            self.stats.delivered += 1
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def send(self, notification: Notification) -> None:
        """Queue a notification for delivery.

        Raises
        ------
        SinkError
            If the producer rejects the message (e.g. local queue full).
        """
        value = json.dumps(to_dict(notification), ensure_ascii=False, default=str).encode("utf-8")
        try:
            self.producer.produce(
                topic=self.topic,
                key=notification.user_id.encode("utf-8"),
                value=value,
                callback=self._delivery_callback,
            )
        except (BufferError, KafkaException) as exc:
            raise SinkError(f"Failed to enqueue notification: {exc}") from exc
        self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float = 30.0) -> None:
        """Flush pending messages."""
        self.producer.flush(timeout)

    def close(self) -> None:
        """Flush and close the producer."""
        self.flush()
        self.stats.end_time = time.time()
        logger.info(
            "Kafka sink closed: sent=%d, delivered=%d, failed=%d, throughput=%.1f/s",
            self.stats.sent,
            self.stats.delivered,
            self.stats.failed,
            self.stats.throughput,
        )
