"""Change detector -- diffs successive aggregate snapshots and broadcasts events.

Per record in the latest snapshot:
  - unseen address                       -> new_token
  - |price - prior| / prior > threshold  -> price_update
  - volume > prior volume * spike ratio  -> volume_spike
The last two are independent and may both fire in one tick. State is
overwritten with the current record every tick.

State grows with the number of distinct addresses ever seen. With
``prune_missing`` enabled it is capped to the latest snapshot instead,
which re-announces an asset as new_token when it comes back.
"""

import time
from decimal import Decimal

from aggregator.config import DetectorSettings
from aggregator.logging import get_logger
from aggregator.models import AssetRecord, ChangeEvent, ChangeType
from aggregator.orchestrator import AggregationOrchestrator
from aggregator.realtime.pubsub import PubSubChannel

logger = get_logger(__name__)


class ChangeDetector:
    """Pulls aggregates on each tick and publishes typed change events.

    Only ``tick`` mutates state; the scheduler runs ticks one at a time.

    Args:
        orchestrator: Source of aggregate snapshots.
        channel: Pub/sub channel events are published to.
        settings: Thresholds, snapshot size and topic.
    """

    def __init__(
        self,
        orchestrator: AggregationOrchestrator,
        channel: PubSubChannel,
        settings: DetectorSettings | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._channel = channel
        self._settings = settings or DetectorSettings()
        self._last_seen: dict[str, AssetRecord] = {}

    @property
    def tracked_count(self) -> int:
        return len(self._last_seen)

    async def tick(self) -> list[ChangeEvent]:
        """Run one detection pass. Never raises; returns the events published."""
        try:
            snapshot = await self._orchestrator.aggregate(self._settings.snapshot_limit)
            events = self.diff(snapshot)
            for event in events:
                await self._channel.publish(self._settings.topic, event.to_dict())
                logger.debug(
                    "change_broadcast",
                    type=event.type.value,
                    ticker=event.asset.ticker,
                )
        except Exception:
            logger.error("change_detection_failed", exc_info=True)
            return []

        if events:
            logger.info(
                "changes_detected",
                events=len(events),
                tracked=len(self._last_seen),
            )
        return events

    def diff(self, snapshot: list[AssetRecord]) -> list[ChangeEvent]:
        """Compare ``snapshot`` with stored state, update state, return events."""
        now = time.time()
        events: list[ChangeEvent] = []

        for record in snapshot:
            prior = self._last_seen.get(record.address)
            if prior is None:
                events.append(ChangeEvent(ChangeType.NEW_TOKEN, record, now))
            else:
                if self._price_moved(prior.price, record.price):
                    events.append(ChangeEvent(ChangeType.PRICE_UPDATE, record, now))
                if record.volume > prior.volume * self._settings.volume_spike_ratio:
                    events.append(ChangeEvent(ChangeType.VOLUME_SPIKE, record, now))
            self._last_seen[record.address] = record

        if self._settings.prune_missing:
            current = {record.address for record in snapshot}
            for address in [a for a in self._last_seen if a not in current]:
                del self._last_seen[address]

        return events

    def _price_moved(self, prior: Decimal, current: Decimal) -> bool:
        if prior == 0:
            return current != 0
        return abs(current - prior) / prior > self._settings.price_change_threshold
