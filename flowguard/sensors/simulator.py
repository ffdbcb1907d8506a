"""Simulated distributed sensors.

Produces a time-ordered stream of observation dicts: background traffic from
each sensor location, plus attack scenarios that the flow rules are meant to
catch (beaconing, brute force, exfiltration) and oversized-packet noise.
Timestamps are virtual (ms), so a run is fully determined by its seed.
"""
from __future__ import annotations

import heapq
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

logger = logging.getLogger(__name__)

LOCATIONS = ('Bamako', 'Sikasso', 'Mopti', 'Gao', 'Kayes', 'Segou')
SERVICE_PORTS = (21, 22, 80, 443, 3389, 8080)
SUSPICIOUS_IPS = ('154.16.10.25', '201.8.45.112', '103.56.12.9', '45.12.189.44')

Event = Dict[str, Any]


def _observation(ts: float, src: str, dst: str, port: int, proto: str, size: int,
                 sensor_id: int, scenario: str = 'normal') -> Event:
    return {
        'timestamp': float(ts),
        'sourceIP': src,
        'destinationIP': dst,
        'destinationPort': port,
        'protocol': proto,
        'packetSize': int(size),
        'sensorId': sensor_id,
        'scenario': scenario,
    }


def beaconing(start: float, src: str, dst: str, port: int = 443, interval_ms: float = 5000,
              count: int = 12, jitter_ms: float = 0, sensor_id: int = 1,
              rng: Optional[random.Random] = None) -> List[Event]:
    """Small periodic check-ins from an implant to its command server."""
    rng = rng or random.Random()
    out = []
    for i in range(count):
        ts = start + i * interval_ms + (rng.uniform(-jitter_ms, jitter_ms) if jitter_ms else 0)
        out.append(_observation(ts, src, dst, port, 'TCP', rng.randint(60, 300), sensor_id, 'beaconing'))
    return out


def brute_force(start: float, src: str, dst: str, port: int = 22, count: int = 15,
                sensor_id: int = 1, rng: Optional[random.Random] = None) -> List[Event]:
    """Rapid login attempts: many small packets towards a login service."""
    rng = rng or random.Random()
    out = []
    ts = start
    for _ in range(count):
        ts += rng.randint(20, 400)
        out.append(_observation(ts, src, dst, port, 'TCP', rng.randint(40, 99), sensor_id, 'brute-force'))
    return out


def exfiltration(start: float, src: str, dst: str, port: int = 443, count: int = 10,
                 packet_size: int = 9000, sensor_id: int = 1,
                 rng: Optional[random.Random] = None) -> List[Event]:
    """Sustained large transfers out of the network."""
    rng = rng or random.Random()
    out = []
    ts = start
    for _ in range(count):
        ts += rng.randint(50, 3000)
        out.append(_observation(ts, src, dst, port, 'TCP', packet_size, sensor_id, 'exfiltration'))
    return out


@dataclass
class SensorSimulator:
    seed: Optional[int] = None
    sensors: int = len(LOCATIONS)
    start_ms: float = 0.0
    # chance that a background event also starts an attack scenario
    attack_probability: float = 0.015
    locations: Sequence[str] = field(default=LOCATIONS)

    def __post_init__(self):
        self.rng = random.Random(self.seed)

    def sensor_location(self, sensor_id: int) -> str:
        return self.locations[(sensor_id - 1) % len(self.locations)]

    def background(self, ts: float, sensor_id: int) -> Event:
        rng = self.rng
        src = f"196.202.{rng.randrange(255)}.{rng.randrange(255)}"
        dst = f"8.8.{rng.randrange(255)}.{rng.randrange(255)}"
        proto = rng.choice(('TCP', 'TCP', 'UDP', 'ICMP'))
        event = _observation(ts, src, dst, rng.choice(SERVICE_PORTS), proto, rng.randint(1, 1500), sensor_id)
        event['sensorLocation'] = self.sensor_location(sensor_id)
        return event

    def scenario(self, start: float, sensor_id: int) -> List[Event]:
        """Pick one attack scenario starting at `start`."""
        rng = self.rng
        src = rng.choice(SUSPICIOUS_IPS)
        dst = f"10.0.0.{rng.randrange(1, 255)}"
        kind = rng.choice(('beaconing', 'brute-force', 'exfiltration', 'oversized'))
        if kind == 'beaconing':
            events = beaconing(start, src, dst, interval_ms=rng.choice((2000, 5000, 10000)),
                               jitter_ms=rng.choice((0, 20, 40)), sensor_id=sensor_id, rng=rng)
        elif kind == 'brute-force':
            events = brute_force(start, src, dst, port=rng.choice((21, 22, 3389)), sensor_id=sensor_id, rng=rng)
        elif kind == 'exfiltration':
            events = exfiltration(start, src, dst, sensor_id=sensor_id, rng=rng)
        else:
            events = [_observation(start + i * 100, src, dst, rng.choice(SERVICE_PORTS), 'UDP',
                                   rng.randint(1500, 4000), sensor_id, 'oversized') for i in range(3)]
        logger.debug("Sensor %d (%s): %s scenario from %s", sensor_id, self.sensor_location(sensor_id), kind, src)
        return events

    def generate(self, duration_ms: float, mean_interval_ms: float = 500) -> Iterator[Event]:
        """Yield observations from all sensors in timestamp order."""
        end = self.start_ms + duration_ms
        streams = []
        for sensor_id in range(1, self.sensors + 1):
            events = []
            ts = self.start_ms + self.rng.uniform(0, mean_interval_ms)
            while ts < end:
                events.append(self.background(ts, sensor_id))
                if self.rng.random() < self.attack_probability:
                    events.extend(e for e in self.scenario(ts, sensor_id)
                                  if self.start_ms <= e['timestamp'] < end)
                ts += self.rng.expovariate(1.0 / mean_interval_ms)
            events.sort(key=lambda e: e['timestamp'])
            streams.append(events)
        return heapq.merge(*streams, key=lambda e: e['timestamp'])
