"""Runtime configuration for the engine and the services around it.

Values are read from `flowguard/config.json` (or the file named by the
`FLOWGUARD_CONFIG` environment variable) and merged over `_DEFAULTS`.
Modules read their sections through `get()`.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict

logger = logging.getLogger(__name__)

_DEFAULTS: Dict[str, Any] = {
    'engine': {
        'anomaly_threshold': 0.7,
        'packet_history_size': 100,
        'flow_history_size': 20,
        'flow_timeout_ms': 60000,
        'max_flows': 10000,
        'max_sources': 10000,
        'bounded': True,
    },
    'queue_maxsize': 5000,
    'api': {'host': '127.0.0.1', 'port': 5000},
    'simulator': {'interval': 0.5, 'sensors': 6},
}

_cfg: Dict[str, Any] = {}

_path = os.environ.get('FLOWGUARD_CONFIG') or os.path.abspath(
    os.path.join(os.path.dirname(__file__), '..', 'config.json'))


def load(path: str | None = None):
    """(Re)load configuration from disk, falling back to defaults."""
    global _cfg
    path = path or _path
    _cfg = dict(_DEFAULTS)
    if not os.path.exists(path):
        return
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read config %s (%s); using defaults", path, e)
        return
    if not isinstance(data, dict):
        logger.warning("Config %s is not a JSON object; using defaults", path)
        return
    for section, value in data.items():
        base = _DEFAULTS.get(section)
        if isinstance(base, dict) and isinstance(value, dict):
            _cfg[section] = {**base, **value}
        else:
            _cfg[section] = value


def get(section: str, default=None):
    return _cfg.get(section, _DEFAULTS.get(section, default))


def set_section(section: str, value: Any):
    _cfg[section] = value


# initialize
load()
