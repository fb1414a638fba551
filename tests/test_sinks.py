"""Tests for notification sinks and the dispatcher."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from confluent_kafka import KafkaException

from loan_tracker.config import KafkaConfig
from loan_tracker.exceptions import SinkError
from loan_tracker.models import Notification, NotificationType
from loan_tracker.notifications import NotificationDispatcher
from loan_tracker.sinks.console import ConsoleSink
from loan_tracker.sinks.kafka import ProducerStats
from loan_tracker.sinks.memory import MemorySink


@pytest.fixture
def notification() -> Notification:
    return Notification(
        notification_id="n-1",
        user_id="user-1",
        notification_type=NotificationType.PAYMENT_ADDED,
        title="Payment recorded",
        message="Olivia recorded a payment",
        loan_id="loan-1",
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestConsoleSink:
    """Tests for ConsoleSink."""

    def test_send_compact(self, notification: Notification, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink(pretty=False)

        sink.send(notification)
        captured = capsys.readouterr()

        data = json.loads(captured.out)
        assert data["notification_type"] == "payment_added"
        assert data["loan_id"] == "loan-1"
        assert sink._counts == {"payment_added": 1}

    def test_close_prints_summary(self, notification: Notification, capsys: pytest.CaptureFixture) -> None:
        sink = ConsoleSink()
        sink.send(notification)
        sink.send(notification)

        sink.close()
        captured = capsys.readouterr()

        assert "Console Sink Summary" in captured.out
        assert "payment_added: 2 notifications" in captured.out


class TestMemorySink:
    """Tests for MemorySink."""

    def test_for_user(self, notification: Notification) -> None:
        sink = MemorySink()
        sink.send(notification)

        assert sink.for_user("user-1") == [notification]
        assert sink.for_user("user-2") == []


class TestKafkaNotificationSink:
    """Tests for KafkaNotificationSink with a mocked producer."""

    def test_producer_stats(self) -> None:
        assert ProducerStats(delivered=3, failed=1).success_rate == 0.75
        assert ProducerStats().success_rate == 0.0

    def test_producer_stats_throughput(self) -> None:
        assert ProducerStats(sent=10, start_time=100.0, end_time=105.0).throughput == 2.0
        assert ProducerStats(sent=10, start_time=100.0).throughput == 0.0

    @patch("loan_tracker.sinks.kafka.Producer")
    def test_init_with_string(self, mock_producer_class: MagicMock) -> None:
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        sink = KafkaNotificationSink("kafka:9092")

        assert sink.config.bootstrap_servers == "kafka:9092"
        assert sink.topic == "loans.notifications"
        mock_producer_class.assert_called_once_with(
            {"bootstrap.servers": "kafka:9092", "acks": "all", "linger.ms": 5, "retries": 3}
        )

    @patch("loan_tracker.sinks.kafka.Producer")
    def test_send_keys_by_recipient(self, mock_producer_class: MagicMock, notification: Notification) -> None:
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        mock_producer = MagicMock()
        mock_producer_class.return_value = mock_producer

        sink = KafkaNotificationSink(KafkaConfig(notifications_topic="alerts"))
        sink.send(notification)

        call_kwargs = mock_producer.produce.call_args[1]
        assert call_kwargs["topic"] == "alerts"
        assert call_kwargs["key"] == b"user-1"
        payload = json.loads(call_kwargs["value"])
        assert payload["title"] == "Payment recorded"
        assert set(payload) == {
            "notification_id",
            "user_id",
            "notification_type",
            "title",
            "message",
            "loan_id",
            "priority",
            "created_at",
        }
        mock_producer.poll.assert_called_once_with(0)
        assert sink.stats.sent == 1

    @patch("loan_tracker.sinks.kafka.Producer")
    def test_send_queue_full(self, mock_producer_class: MagicMock, notification: Notification) -> None:
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        mock_producer = MagicMock()
        mock_producer.produce.side_effect = BufferError("Local: Queue full")
        mock_producer_class.return_value = mock_producer

        sink = KafkaNotificationSink("localhost:9092")

        with pytest.raises(SinkError):
            sink.send(notification)
        assert sink.stats.sent == 0

    @patch("loan_tracker.sinks.kafka.Producer")
    def test_send_kafka_exception(self, mock_producer_class: MagicMock, notification: Notification) -> None:
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        mock_producer_class.return_value.produce.side_effect = KafkaException("broker down")

        with pytest.raises(SinkError):
            KafkaNotificationSink("localhost:9092").send(notification)

    @patch("loan_tracker.sinks.kafka.Producer")
    def test_delivery_callback(self, mock_producer_class: MagicMock) -> None:
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        sink = KafkaNotificationSink("localhost:9092")
        mock_msg = MagicMock()
        mock_msg.topic.return_value = "loans.notifications"
        mock_msg.partition.return_value = 0
        mock_msg.offset.return_value = 1

        sink._delivery_callback(None, mock_msg)
        sink._delivery_callback("Connection error", None)

        assert sink.stats.delivered == 1
        assert sink.stats.failed == 1

    @patch("loan_tracker.sinks.kafka.Producer")
    def test_close_flushes(self, mock_producer_class: MagicMock) -> None:
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        mock_producer = MagicMock()
        mock_producer_class.return_value = mock_producer

        KafkaNotificationSink("localhost:9092").close()

        mock_producer.flush.assert_called_once_with(30.0)

    @patch("loan_tracker.sinks.kafka.Producer")
    def test_close_records_end_time(
        self, mock_producer_class: MagicMock, notification: Notification, caplog: pytest.LogCaptureFixture
    ) -> None:
        from loan_tracker.sinks.kafka import KafkaNotificationSink

        sink = KafkaNotificationSink("localhost:9092")
        sink.send(notification)

        with caplog.at_level("INFO", logger="loan_tracker.sinks.kafka"):
            sink.close()

        assert sink.stats.end_time is not None
        assert sink.stats.end_time >= sink.stats.start_time
        assert sink.stats.throughput >= 0.0
        assert "sent=1" in caplog.text
        assert "throughput=" in caplog.text


class TestNotificationDispatcher:
    """Tests for NotificationDispatcher."""

    def test_notify_fans_out(self) -> None:
        first, second = MemorySink(), MemorySink()
        dispatcher = NotificationDispatcher([first, second])

        notification = dispatcher.notify("user-1", NotificationType.LOAN_INVITE, "Invite", "You are invited", "loan-1")

        assert first.notifications == [notification]
        assert second.notifications == [notification]
        assert notification.priority == "normal"

    def test_no_recipient(self) -> None:
        sink = MemorySink()

        assert NotificationDispatcher([sink]).notify(None, NotificationType.LOAN_INVITE, "t", "m") is None
        assert sink.notifications == []

    def test_failing_sink_does_not_stop_others(self, caplog: pytest.LogCaptureFixture) -> None:
        broken = MagicMock()
        broken.send.side_effect = SinkError("queue full")
        healthy = MemorySink()

        NotificationDispatcher([broken, healthy]).notify("user-1", NotificationType.COMMENT_ADDED, "t", "m")

        assert len(healthy.notifications) == 1
        assert "Notification sink" in caplog.text

    def test_close(self) -> None:
        sink = MagicMock()

        NotificationDispatcher([sink]).close()

        sink.close.assert_called_once()
