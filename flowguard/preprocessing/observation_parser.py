"""Observation normalization / parsing helpers.

Provides `normalize_observation()` which converts sensor, capture-backend or
HTTP payload dictionaries into the canonical `Observation` used by the engine.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from typing import Any, Dict, Union

from flowguard.detection.types import Observation
from flowguard.utils.normalization import is_valid_ip, normalize_protocol, pick, to_int

logger = logging.getLogger(__name__)


def _timestamp(value: Any):
    """Return a millisecond timestamp, or None when absent/unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(ts):
        return None
    return ts


def normalize_observation(data: Union[Observation, Dict[str, Any]]) -> Observation:
    """Return an `Observation` built from a loosely keyed dict.

    `Observation` instances are re-coerced field by field, so callers that
    construct one directly get the same defaults as HTTP payloads.

    Missing or malformed values are defaulted rather than rejected:
    packet size -> 0 (negative sizes are clamped), port -> None,
    protocol -> '', timestamp -> None (stamped later by the engine).
    """
    if isinstance(data, Observation):
        data = dataclasses.asdict(data)
    elif not isinstance(data, dict):
        logger.debug("Unsupported observation payload %r; using empty observation", data)
        data = {}

    src = pick(data, 'source_ip', '')
    src = str(src) if src is not None else ''
    if src and not is_valid_ip(src):
        logger.debug("Observation source %r is not an IP address", src)

    dst = pick(data, 'destination_ip')
    port = to_int(pick(data, 'destination_port'), default=None)

    size = max(0, to_int(pick(data, 'packet_size'), default=0))

    return Observation(
        source_ip=src,
        destination_ip=str(dst) if dst is not None else None,
        destination_port=port,
        protocol=normalize_protocol(pick(data, 'protocol')),
        packet_size=size,
        timestamp=_timestamp(pick(data, 'timestamp')),
        sensor_id=pick(data, 'sensor_id'),
    )
