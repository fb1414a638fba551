"""Notification sinks."""

from loan_tracker.sinks.console import ConsoleSink
from loan_tracker.sinks.kafka import KafkaNotificationSink
from loan_tracker.sinks.memory import MemorySink

__all__ = ["ConsoleSink", "KafkaNotificationSink", "MemorySink"]
