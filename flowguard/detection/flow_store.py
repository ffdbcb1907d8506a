"""Flow state store: flow key -> Flow with bounded history.

Stale flows are removed by `sweep(now)`, which the engine calls after every
observation. Hosts with sparse traffic can call it on their own schedule.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Iterator, Optional

from flowguard.detection.types import FeatureRecord, Flow

logger = logging.getLogger(__name__)

FLOW_HISTORY_SIZE = 20
FLOW_TIMEOUT_MS = 60000


class FlowStore:
    def __init__(self, history_size: int = FLOW_HISTORY_SIZE, timeout_ms: float = FLOW_TIMEOUT_MS,
                 max_flows: Optional[int] = None):
        self.history_size = history_size
        self.timeout_ms = timeout_ms
        self.max_flows = max_flows
        # ordered by last access so the front is the LRU victim
        self._flows: "OrderedDict[str, Flow]" = OrderedDict()
        self.capacity_exceeded = 0

    def __len__(self) -> int:
        return len(self._flows)

    def __contains__(self, key: str) -> bool:
        return key in self._flows

    def __iter__(self) -> Iterator[Flow]:
        return iter(list(self._flows.values()))

    def get(self, key: str) -> Optional[Flow]:
        return self._flows.get(key)

    def get_or_create(self, key: str, now: float) -> Flow:
        flow = self._flows.get(key)
        if flow is not None:
            self._flows.move_to_end(key)
            return flow
        if self.max_flows is not None and self._flows and len(self._flows) >= self.max_flows:
            self._evict_oldest()
        flow = Flow.new(key, now, self.history_size)
        self._flows[key] = flow
        logger.debug("New flow %s", key)
        return flow

    def append(self, flow: Flow, record: FeatureRecord) -> None:
        # deque maxlen drops the oldest record once the window is full
        flow.history.append(record)
        flow.last_seen = record.timestamp

    def sweep(self, now: float) -> int:
        """Remove flows idle for longer than the timeout; return how many."""
        stale = [k for k, f in self._flows.items() if (now - f.last_seen) > self.timeout_ms]
        for k in stale:
            del self._flows[k]
        if stale:
            logger.debug("Swept %d stale flows", len(stale))
        return len(stale)

    def clear(self) -> None:
        self._flows.clear()
        self.capacity_exceeded = 0

    def _evict_oldest(self) -> None:
        key, _ = self._flows.popitem(last=False)
        self.capacity_exceeded += 1
        if self.capacity_exceeded == 1:
            logger.warning("Flow table full (%d flows); evicting least recently used flows", self.max_flows)
        else:
            logger.debug("Evicted flow %s", key)
