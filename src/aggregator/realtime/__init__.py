"""Real-time layer -- snapshot diffing and topic-based event fan-out."""

from aggregator.realtime.detector import ChangeDetector
from aggregator.realtime.pubsub import PubSubChannel

__all__ = ["ChangeDetector", "PubSubChannel"]
