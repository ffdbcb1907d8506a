"""Feature extraction: observation -> FeatureRecord.

Keeps the per-source observation counts used for the source frequency ratio.
The table is an LRU map; when `max_sources` is reached the least recently
seen source is dropped together with its share of the running total.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, Optional

from flowguard.detection.types import FeatureRecord, Observation, ProtocolType

logger = logging.getLogger(__name__)


class SourceFrequencyTable:
    """Source ip -> observation count, with a running total of all counts."""

    def __init__(self, max_sources: Optional[int] = None):
        self.max_sources = max_sources
        self._counts: "OrderedDict[str, int]" = OrderedDict()
        self._total = 0
        self.capacity_exceeded = 0

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, source_ip: str) -> bool:
        return source_ip in self._counts

    @property
    def total(self) -> int:
        return self._total

    def count(self, source_ip: str) -> int:
        return self._counts.get(source_ip, 0)

    def increment(self, source_ip: str) -> int:
        if source_ip in self._counts:
            self._counts.move_to_end(source_ip)
        elif self.max_sources is not None and self._counts and len(self._counts) >= self.max_sources:
            self._evict_oldest()
        count = self._counts.get(source_ip, 0) + 1
        self._counts[source_ip] = count
        self._total += 1
        return count

    def ratio(self, source_ip: str) -> float:
        if self._total <= 0:
            return 0.0
        return min(1.0, self._counts.get(source_ip, 0) / self._total)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def clear(self) -> None:
        self._counts.clear()
        self._total = 0
        self.capacity_exceeded = 0

    def _evict_oldest(self) -> None:
        evicted, count = self._counts.popitem(last=False)
        self._total -= count
        self.capacity_exceeded += 1
        if self.capacity_exceeded == 1:
            logger.warning("Source table full (%d sources); evicting least recent sources", self.max_sources)
        else:
            logger.debug("Evicted source %s (%d observations)", evicted, count)


class FeatureExtractor:
    def __init__(self, table: Optional[SourceFrequencyTable] = None):
        self.table = table if table is not None else SourceFrequencyTable()

    def extract(self, observation: Observation, now: float) -> FeatureRecord:
        """Build the feature record and count the observation's source.

        `now` stamps observations that arrived without a timestamp.
        """
        src = observation.source_ip or ''
        self.table.increment(src)
        ts = observation.timestamp if observation.timestamp is not None else now
        return FeatureRecord(
            packet_size=observation.packet_size or 0,
            protocol_type=ProtocolType.from_name(observation.protocol),
            source_frequency_ratio=self.table.ratio(src),
            source_ip=src,
            destination_ip=observation.destination_ip,
            destination_port=observation.destination_port,
            timestamp=ts,
        )
