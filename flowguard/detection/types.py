"""Data structures shared by the detection layer.

- Observation   : one normalized network observation (engine input)
- FeatureRecord : per-observation features, kept in history windows
- Flow          : per (src, dst, dport) state with bounded history
- Prediction    : flow-level threat prediction
- Verdict       : complete output of one analysis call
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Deque, Dict, Optional


class ProtocolType(IntEnum):
    OTHER = 0
    TCP = 1
    UDP = 2

    @classmethod
    def from_name(cls, name: str) -> "ProtocolType":
        if name == 'TCP':
            return cls.TCP
        if name == 'UDP':
            return cls.UDP
        return cls.OTHER


class PredictionType(str, Enum):
    BEACONING_C2 = 'Beaconing-C2'
    BRUTE_FORCE = 'BruteForce'
    DATA_EXFILTRATION = 'DataExfiltration'
    MULTIPLE_SUSPICIOUS_ACTIVITY = 'MultipleSuspiciousActivity'
    NONE = 'none'


@dataclass(frozen=True)
class Observation:
    source_ip: str
    destination_ip: Optional[str] = None
    destination_port: Optional[int] = None
    protocol: str = ''
    packet_size: int = 0
    timestamp: Optional[float] = None  # ms; stamped by the engine when missing
    sensor_id: Optional[Any] = None


@dataclass(frozen=True)
class FeatureRecord:
    packet_size: int
    protocol_type: ProtocolType
    source_frequency_ratio: float
    source_ip: str
    destination_ip: Optional[str]
    destination_port: Optional[int]
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'packet_size': self.packet_size,
            'protocol_type': int(self.protocol_type),
            'source_frequency_ratio': self.source_frequency_ratio,
            'source_ip': self.source_ip,
            'destination_ip': self.destination_ip,
            'destination_port': self.destination_port,
            'timestamp': self.timestamp,
        }


def flow_key(source_ip: str, destination_ip: Optional[str], destination_port: Optional[int]) -> str:
    """Composite flow identity: ``src>dst:dport``."""
    dst = '' if destination_ip is None else destination_ip
    port = '' if destination_port is None else destination_port
    return f"{source_ip}>{dst}:{port}"


@dataclass
class Flow:
    key: str
    history: Deque[FeatureRecord]
    last_seen: float
    threat_score: float = 0.0

    @classmethod
    def new(cls, key: str, now: float, history_size: int) -> "Flow":
        return cls(key=key, history=deque(maxlen=history_size), last_seen=now)

    def add_score(self, points: float) -> None:
        # score only ever accumulates
        if points > 0:
            self.threat_score += points


@dataclass(frozen=True)
class Prediction:
    is_predicted: bool = False
    prediction_confidence: float = 0.0
    prediction_type: PredictionType = PredictionType.NONE
    reason: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_predicted': self.is_predicted,
            'prediction_confidence': self.prediction_confidence,
            'prediction_type': self.prediction_type.value,
            'reason': self.reason,
        }


NO_PREDICTION = Prediction()


@dataclass(frozen=True)
class Verdict:
    is_threat: bool
    confidence: float
    reason: str
    features: FeatureRecord
    prediction: Prediction = field(default=NO_PREDICTION)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_threat': self.is_threat,
            'confidence': self.confidence,
            'reason': self.reason,
            'features': self.features.to_dict(),
            'prediction': self.prediction.to_dict(),
        }
