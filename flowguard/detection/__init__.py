"""Detection layer: feature extraction, flow state and threat scoring."""

from flowguard.detection.engine import AnomalyEngine, EngineSettings
from flowguard.detection.types import (
    FeatureRecord,
    Flow,
    Observation,
    Prediction,
    PredictionType,
    ProtocolType,
    Verdict,
)

__all__ = [
    'AnomalyEngine',
    'EngineSettings',
    'FeatureRecord',
    'Flow',
    'Observation',
    'Prediction',
    'PredictionType',
    'ProtocolType',
    'Verdict',
]
