"""
Tests for the simulated sensors.
"""

import random

from flowguard.detection.engine import AnomalyEngine, EngineSettings
from flowguard.detection.types import PredictionType
from flowguard.sensors.simulator import SensorSimulator, beaconing, brute_force, exfiltration
from tests.conftest import FakeClock


def run(events):
    engine = AnomalyEngine(EngineSettings(), clock=FakeClock(0))
    verdict = None
    for e in events:
        verdict = engine.analyze_and_predict(e)
    return verdict


class TestScenarios:
    """Each attack scenario triggers the matching prediction."""

    def test_beaconing_scenario(self):
        events = beaconing(0, "45.12.189.44", "10.0.0.5", interval_ms=5000, rng=random.Random(1))
        assert run(events).prediction.prediction_type == PredictionType.BEACONING_C2

    def test_brute_force_scenario(self):
        events = brute_force(0, "103.56.12.9", "10.0.0.5", port=3389, rng=random.Random(2))
        verdict = run(events)

        assert verdict.prediction.prediction_type == PredictionType.BRUTE_FORCE
        assert verdict.prediction.prediction_confidence == 95

    def test_exfiltration_scenario(self):
        events = exfiltration(0, "201.8.45.112", "10.0.0.5", rng=random.Random(3))
        assert run(events).prediction.prediction_type == PredictionType.DATA_EXFILTRATION


class TestSensorSimulator:
    """Tests for SensorSimulator.generate."""

    def test_same_seed_same_stream(self):
        first = list(SensorSimulator(seed=7, sensors=3).generate(60000))
        second = list(SensorSimulator(seed=7, sensors=3).generate(60000))

        assert first == second
        assert len(first) > 0

    def test_stream_is_time_ordered_and_bounded(self):
        events = list(SensorSimulator(seed=11, sensors=4, attack_probability=1.0).generate(30000))
        timestamps = [e["timestamp"] for e in events]

        assert timestamps == sorted(timestamps)
        assert all(0 <= ts < 30000 for ts in timestamps)
        assert {e["sensorId"] for e in events} == {1, 2, 3, 4}

    def test_zero_attack_probability_is_background_only(self):
        events = list(SensorSimulator(seed=3, sensors=3, attack_probability=0.0).generate(60000))

        assert events
        assert all(e["scenario"] == "normal" for e in events)

    def test_attack_probability_is_per_background_event(self):
        """With probability 1 every sensor starts scenarios; the rate is not scaled down."""
        events = list(SensorSimulator(seed=3, sensors=3, attack_probability=1.0).generate(20000))
        background = [e for e in events if e["scenario"] == "normal"]
        attacks = [e for e in events if e["scenario"] != "normal"]

        assert {e["sensorId"] for e in attacks} == {1, 2, 3}
        assert len(attacks) >= len(background)

    def test_sensor_locations_cycle(self):
        sim = SensorSimulator(seed=1)
        assert sim.sensor_location(1) == "Bamako"
        assert sim.sensor_location(7) == "Bamako"

    def test_stream_feeds_engine(self):
        engine = AnomalyEngine(EngineSettings(), clock=FakeClock(0))
        for e in SensorSimulator(seed=5, sensors=2).generate(20000):
            engine.analyze_and_predict(e)

        assert engine.stats()["observations"] > 0
