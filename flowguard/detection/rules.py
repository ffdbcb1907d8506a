"""Scoring rules.

Point rules judge the current record on its own. Flow rules look at the
flow's history and are applied in `FLOW_RULES` order: every rule that matches
adds to the flow's threat score and replaces the current prediction, so the
last matching rule is the one reported. The score fallback only applies when
none of them matched.
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from flowguard.detection.types import FeatureRecord, Flow, Prediction, PredictionType, ProtocolType

MIN_FLOW_RECORDS = 5

BEACON_MAX_STDDEV_MS = 100
BEACON_MIN_MEAN_MS = 500
BEACON_SCORE = 20

BRUTE_FORCE_MIN_RECORDS = 10
BRUTE_FORCE_SMALL_PACKET = 100
BRUTE_FORCE_MIN_SMALL = 8
BRUTE_FORCE_PORTS = frozenset({21, 22, 3389})
BRUTE_FORCE_SCORE = 30

EXFIL_MIN_BYTES = 50000
EXFIL_SCORE = 40

FALLBACK_MIN_SCORE = 50

# oversized cutoff in bytes per unit of anomaly threshold (0.7 -> 1400)
OVERSIZED_BYTES_PER_THRESHOLD = 2000


@dataclass(frozen=True)
class PointThresholds:
    oversized_packet_bytes: int = 1400
    frequent_source_ratio: float = 0.7

    @classmethod
    def from_anomaly_threshold(cls, threshold: float) -> "PointThresholds":
        return cls(
            oversized_packet_bytes=int(round(threshold * OVERSIZED_BYTES_PER_THRESHOLD)),
            frequent_source_ratio=threshold,
        )


def evaluate_point_rules(record: FeatureRecord, thresholds: PointThresholds) -> Tuple[bool, float, List[str]]:
    is_threat = False
    confidence = 0.0
    reasons: List[str] = []

    limit = thresholds.oversized_packet_bytes
    if record.packet_size > limit:
        is_threat = True
        confidence = min(0.95, 0.6 + (record.packet_size - limit) / 1000)
        reasons.append("oversized packet")

    if record.source_frequency_ratio > thresholds.frequent_source_ratio and record.protocol_type == ProtocolType.TCP:
        is_threat = True
        confidence = max(confidence, min(0.98, record.source_frequency_ratio))
        reasons.append("very frequent TCP source")

    return is_threat, confidence, reasons


@dataclass(frozen=True)
class FlowStats:
    """Rolling statistics over a flow's history window."""

    count: int
    mean_interval: Optional[float]
    stddev_interval: Optional[float]
    small_packets: int
    total_bytes: int

    @classmethod
    def from_history(cls, history: Sequence[FeatureRecord]) -> "FlowStats":
        records = list(history)
        deltas = [b.timestamp - a.timestamp for a, b in zip(records, records[1:])]
        mean = stddev = None
        # huge timestamps can overflow their differences to inf
        if deltas and all(math.isfinite(d) for d in deltas):
            mean = statistics.fmean(deltas)
            stddev = statistics.pstdev(deltas, mu=mean)
            if not (math.isfinite(mean) and math.isfinite(stddev)):
                mean = stddev = None
        return cls(
            count=len(records),
            mean_interval=mean,
            stddev_interval=stddev,
            small_packets=sum(1 for r in records if r.packet_size < BRUTE_FORCE_SMALL_PACKET),
            total_bytes=sum(r.packet_size for r in records),
        )


@dataclass(frozen=True)
class RuleHit:
    prediction: Prediction
    score: float


FlowRule = Callable[[Flow, FeatureRecord, FlowStats], Optional[RuleHit]]


def beaconing_rule(flow: Flow, record: FeatureRecord, stats: FlowStats) -> Optional[RuleHit]:
    """Regular check-ins: low jitter between packets, more than 500ms apart."""
    if stats.mean_interval is None or stats.stddev_interval is None:
        return None
    if not (stats.stddev_interval < BEACON_MAX_STDDEV_MS and stats.mean_interval > BEACON_MIN_MEAN_MS):
        return None
    return RuleHit(
        prediction=Prediction(
            is_predicted=True,
            prediction_confidence=min(95, 70 + (200 - stats.stddev_interval)),
            prediction_type=PredictionType.BEACONING_C2,
            reason=f"Periodic activity detected from {record.source_ip} "
                   f"(interval ~{stats.mean_interval / 1000:.1f}s).",
        ),
        score=BEACON_SCORE,
    )


def brute_force_rule(flow: Flow, record: FeatureRecord, stats: FlowStats) -> Optional[RuleHit]:
    """Many small packets towards a login service (FTP, SSH, RDP)."""
    if stats.count <= BRUTE_FORCE_MIN_RECORDS or stats.small_packets <= BRUTE_FORCE_MIN_SMALL:
        return None
    if record.destination_port not in BRUTE_FORCE_PORTS:
        return None
    return RuleHit(
        prediction=Prediction(
            is_predicted=True,
            prediction_confidence=min(98, 80 + stats.small_packets),
            prediction_type=PredictionType.BRUTE_FORCE,
            reason=f"Multiple connection attempts on port {record.destination_port} from {record.source_ip}.",
        ),
        score=BRUTE_FORCE_SCORE,
    )


def exfiltration_rule(flow: Flow, record: FeatureRecord, stats: FlowStats) -> Optional[RuleHit]:
    if stats.total_bytes <= EXFIL_MIN_BYTES:
        return None
    return RuleHit(
        prediction=Prediction(
            is_predicted=True,
            prediction_confidence=min(99, 75 + (stats.total_bytes - EXFIL_MIN_BYTES) / 10000),
            prediction_type=PredictionType.DATA_EXFILTRATION,
            reason=f"Abnormally high outbound volume ({stats.total_bytes / 1024:.1f} KB) "
                   f"from {record.source_ip}.",
        ),
        score=EXFIL_SCORE,
    )


# evaluation order matters: a later match replaces an earlier one
FLOW_RULES: Tuple[FlowRule, ...] = (beaconing_rule, brute_force_rule, exfiltration_rule)


def evaluate_flow_rules(flow: Flow, record: FeatureRecord,
                        rules: Sequence[FlowRule] = FLOW_RULES) -> Optional[Prediction]:
    """Run the flow rules, accumulating score; return the last match.

    Flows with `MIN_FLOW_RECORDS` records or fewer are not evaluated.
    """
    if len(flow.history) <= MIN_FLOW_RECORDS:
        return None
    stats = FlowStats.from_history(flow.history)
    prediction = None
    for rule in rules:
        hit = rule(flow, record, stats)
        if hit is None:
            continue
        flow.add_score(hit.score)
        prediction = hit.prediction
    return prediction


def score_fallback(flow: Flow, record: FeatureRecord) -> Optional[Prediction]:
    """Escalate flows whose accumulated score is high even without a fresh match."""
    if flow.threat_score <= FALLBACK_MIN_SCORE:
        return None
    return Prediction(
        is_predicted=True,
        prediction_confidence=min(99, flow.threat_score),
        prediction_type=PredictionType.MULTIPLE_SUSPICIOUS_ACTIVITY,
        reason=f"Flow from {record.source_ip} has a high threat score ({flow.threat_score:g}).",
    )
