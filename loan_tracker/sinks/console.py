"""Console sink for debugging and development."""

import json

from loan_tracker.models.base import Notification
from loan_tracker.serialization import to_dict


class ConsoleSink:
    """Print notifications to stdout as JSON."""

    def __init__(self, pretty: bool = True) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        """
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def send(self, notification: Notification) -> None:
        """Print a single notification."""
        data = to_dict(notification)
        if self.pretty:
            print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
        else:
            print(json.dumps(data, ensure_ascii=False, default=str))
        kind = notification.notification_type.value
        self._counts[kind] = self._counts.get(kind, 0) + 1

    def close(self) -> None:
        """Print summary and close."""
        print(f"\n{'='*60}")
        print("Console Sink Summary")
        print("=" * 60)
        for kind, count in self._counts.items():
            print(f"  {kind}: {count} notifications")
