"""Detection engine core.

`AnomalyEngine` owns every piece of mutable detection state (source frequency
table, packet history, flow store) and processes one observation at a time
under a single lock: extract -> flow update -> point + flow scoring -> sweep.
Construct one engine per logical stream and pass it to whatever needs it.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Union

from flowguard.detection.features import FeatureExtractor, SourceFrequencyTable
from flowguard.detection.flow_store import FLOW_HISTORY_SIZE, FLOW_TIMEOUT_MS, FlowStore
from flowguard.detection.rules import (
    FLOW_RULES,
    FlowRule,
    PointThresholds,
    evaluate_flow_rules,
    evaluate_point_rules,
    score_fallback,
)
from flowguard.detection.types import NO_PREDICTION, FeatureRecord, Flow, Observation, Verdict, flow_key
from flowguard.preprocessing.observation_parser import normalize_observation
from flowguard.utils import config as cfg
from flowguard.utils.normalization import to_bool

logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    return time.time() * 1000.0


@dataclass
class EngineSettings:
    anomaly_threshold: float = 0.7
    packet_history_size: int = 100
    flow_history_size: int = FLOW_HISTORY_SIZE
    flow_timeout_ms: float = FLOW_TIMEOUT_MS
    max_flows: Optional[int] = 10000
    max_sources: Optional[int] = 10000
    # False keeps both tables unbounded
    bounded: bool = True

    @classmethod
    def from_config(cls, section: Optional[Mapping[str, Any]] = None) -> "EngineSettings":
        section = section if section is not None else (cfg.get('engine') or {})
        defaults = cls()
        return cls(
            anomaly_threshold=float(section.get('anomaly_threshold', defaults.anomaly_threshold)),
            packet_history_size=int(section.get('packet_history_size', defaults.packet_history_size)),
            flow_history_size=int(section.get('flow_history_size', defaults.flow_history_size)),
            flow_timeout_ms=float(section.get('flow_timeout_ms', defaults.flow_timeout_ms)),
            max_flows=_optional_int(section.get('max_flows', defaults.max_flows)),
            max_sources=_optional_int(section.get('max_sources', defaults.max_sources)),
            bounded=to_bool(section.get('bounded'), defaults.bounded),
        )

    @property
    def point_thresholds(self) -> PointThresholds:
        return PointThresholds.from_anomaly_threshold(self.anomaly_threshold)


def _optional_int(value):
    if value is None:
        return None
    value = int(value)
    return value if value > 0 else None


class AnomalyEngine:
    """Stateful flow-based anomaly detector and threat predictor."""

    def __init__(self, settings: Optional[EngineSettings] = None,
                 clock: Optional[Callable[[], float]] = None,
                 flow_rules: Optional[List[FlowRule]] = None) -> None:
        self.settings = settings or EngineSettings.from_config()
        self._clock = clock or wall_clock_ms
        self.flow_rules = list(flow_rules) if flow_rules is not None else list(FLOW_RULES)
        self._thresholds = self.settings.point_thresholds

        bounded = self.settings.bounded
        self.sources = SourceFrequencyTable(self.settings.max_sources if bounded else None)
        self.extractor = FeatureExtractor(self.sources)
        self.flows = FlowStore(
            history_size=self.settings.flow_history_size,
            timeout_ms=self.settings.flow_timeout_ms,
            max_flows=self.settings.max_flows if bounded else None,
        )
        self.packet_history: Deque[FeatureRecord] = deque(maxlen=self.settings.packet_history_size)
        self.observations = 0
        self._lock = threading.Lock()
        logger.info(
            "AnomalyEngine initialized (threshold=%s, oversized>%d bytes, flow window=%d, timeout=%sms, bounded=%s)",
            self.settings.anomaly_threshold, self._thresholds.oversized_packet_bytes,
            self.settings.flow_history_size, self.settings.flow_timeout_ms, bounded,
        )

    @property
    def thresholds(self) -> PointThresholds:
        return self._thresholds

    def set_anomaly_threshold(self, threshold: float) -> None:
        with self._lock:
            self.settings.anomaly_threshold = float(threshold)
            self._thresholds = self.settings.point_thresholds
        logger.info("Anomaly threshold set to %s (oversized>%d bytes)",
                    threshold, self._thresholds.oversized_packet_bytes)

    def analyze_and_predict(self, observation: Union[Observation, Dict[str, Any]]) -> Verdict:
        """Analyze one observation, update flow state and return the verdict."""
        obs = normalize_observation(observation)
        with self._lock:
            record = self.extractor.extract(obs, now=self._clock())
            self.observations += 1
            self.packet_history.append(record)

            flow = self.flows.get_or_create(
                flow_key(record.source_ip, record.destination_ip, record.destination_port),
                now=record.timestamp,
            )
            self.flows.append(flow, record)

            is_threat, confidence, reasons = evaluate_point_rules(record, self._thresholds)
            prediction = evaluate_flow_rules(flow, record, self.flow_rules)

            self.flows.sweep(record.timestamp)

            if prediction is None:
                prediction = score_fallback(flow, record)

        verdict = Verdict(
            is_threat=is_threat,
            confidence=confidence,
            reason=', '.join(reasons),
            features=record,
            prediction=prediction or NO_PREDICTION,
        )
        if verdict.prediction.is_predicted:
            logger.info("Prediction %s (%.1f%%) for flow %s: %s", verdict.prediction.prediction_type.value,
                        verdict.prediction.prediction_confidence, flow.key, verdict.prediction.reason)
        elif is_threat:
            logger.debug("Point anomaly from %s: %s (%.2f)", record.source_ip, verdict.reason, confidence)
        return verdict

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop stale flows; `now` defaults to the engine clock."""
        with self._lock:
            return self.flows.sweep(self._clock() if now is None else now)

    def get_flow(self, key: str) -> Optional[Flow]:
        with self._lock:
            return self.flows.get(key)

    def recent_records(self) -> List[FeatureRecord]:
        with self._lock:
            return list(self.packet_history)

    def reset(self) -> None:
        """Forget every source, flow and record seen so far."""
        with self._lock:
            self.sources.clear()
            self.flows.clear()
            self.packet_history.clear()
            self.observations = 0
        logger.debug("AnomalyEngine state reset")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'observations': self.observations,
                'active_flows': len(self.flows),
                'tracked_sources': len(self.sources),
                'packet_history': len(self.packet_history),
                'capacity_exceeded': {
                    'flows': self.flows.capacity_exceeded,
                    'sources': self.sources.capacity_exceeded,
                },
                'anomaly_threshold': self.settings.anomaly_threshold,
            }
