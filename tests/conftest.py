"""Shared fixtures for the detection tests."""

import pytest

from flowguard.detection.engine import AnomalyEngine, EngineSettings
from flowguard.detection.types import FeatureRecord, Flow, ProtocolType


class FakeClock:
    def __init__(self, now=0.0):
        self.now = float(now)

    def __call__(self):
        return self.now


def make_obs(ts, src="10.1.1.5", dst="10.2.2.9", port=443, size=200, proto="TCP"):
    return {
        "sourceIP": src,
        "destinationIP": dst,
        "destinationPort": port,
        "protocol": proto,
        "packetSize": size,
        "timestamp": ts,
    }


def make_record(ts, size=200, port=443, src="10.1.1.5", dst="10.2.2.9",
                proto=ProtocolType.TCP, ratio=0.1):
    return FeatureRecord(
        packet_size=size,
        protocol_type=proto,
        source_frequency_ratio=ratio,
        source_ip=src,
        destination_ip=dst,
        destination_port=port,
        timestamp=float(ts),
    )


def make_flow(records, history_size=20):
    flow = Flow.new("10.1.1.5>10.2.2.9:443", records[0].timestamp if records else 0.0, history_size)
    for r in records:
        flow.history.append(r)
        flow.last_seen = r.timestamp
    return flow


@pytest.fixture
def clock():
    return FakeClock(0.0)


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def engine(settings, clock):
    return AnomalyEngine(settings=settings, clock=clock)
