"""
FlowGuard
=========

Stateful flow-based anomaly detection and threat prediction for a
security-operations dashboard. Sensors (simulated or live capture) feed
observations to the detection engine, which returns a verdict per observation.
"""

from . import preprocessing, detection, utils

__version__ = "0.1.0"
