"""
Tests for the ingest pipeline.
"""

import io
import json

import pytest

from flowguard.api import ingest
from flowguard.api.ingest import IngestPipeline, print_event, severity_for
from flowguard.detection.engine import AnomalyEngine, EngineSettings
from tests.conftest import FakeClock, make_obs


@pytest.fixture
def engine():
    return AnomalyEngine(EngineSettings(), clock=FakeClock(0))


@pytest.fixture
def pipeline(engine):
    p = IngestPipeline(engine, maxsize=50)
    yield p
    p.stop()


class TestIngestPipeline:
    """Tests for IngestPipeline."""

    def test_handlers_receive_verdicts_in_order(self, pipeline):
        seen = []
        pipeline.add_handler(lambda verdict, obs: seen.append((verdict.features.timestamp, obs["timestamp"])))

        for i in range(10):
            assert pipeline.submit(make_obs(i * 1000)) is True
        pipeline.join()

        assert [ts for ts, _ in seen] == [float(i * 1000) for i in range(10)]

    def test_failing_handler_does_not_stop_worker(self, pipeline):
        seen = []

        def broken(verdict, obs):
            raise RuntimeError("boom")

        pipeline.add_handler(broken)
        pipeline.add_handler(lambda verdict, obs: seen.append(verdict))
        pipeline.submit(make_obs(0))
        pipeline.submit(make_obs(1000))
        pipeline.join()

        assert len(seen) == 2

    def test_remove_handler(self, pipeline):
        seen = []
        handler = lambda verdict, obs: seen.append(verdict)  # noqa: E731
        pipeline.add_handler(handler)
        pipeline.remove_handler(handler)
        pipeline.submit(make_obs(0))
        pipeline.join()

        assert seen == []

    def test_stop_drains_queue(self, engine):
        p = IngestPipeline(engine, maxsize=50)
        for i in range(20):
            p.submit(make_obs(i))
        p.stop()

        assert engine.stats()["observations"] == 20

    def test_shared_pipeline_can_swap_engine(self):
        replacement = AnomalyEngine(EngineSettings(), clock=FakeClock(0))
        try:
            ingest.reload_engine(replacement)
            assert ingest.ingest_observation(make_obs(0)) is True
            ingest.get_pipeline().join()
            assert replacement.stats()["observations"] == 1
        finally:
            ingest.stop()


class TestEvents:
    """Tests for severity and JSON line output."""

    def test_severity(self, engine):
        assert severity_for(engine.analyze_and_predict(make_obs(0, src="a", proto="UDP"))) == "none"
        assert severity_for(engine.analyze_and_predict(make_obs(0, src="b", size=1500, proto="UDP"))) == "medium"
        assert severity_for(engine.analyze_and_predict(make_obs(0, src="c", size=2400, proto="UDP"))) == "high"

    def test_print_event_skips_clean_verdicts(self, engine):
        out = io.StringIO()
        clean = engine.analyze_and_predict(make_obs(0, src="a", proto="UDP"))
        print_event(clean, {}, stream=out)
        assert out.getvalue() == ""

        alert = engine.analyze_and_predict(make_obs(0, src="b", size=1500, proto="UDP"))
        print_event(alert, {"sensorId": 2}, stream=out)
        line = json.loads(out.getvalue())
        assert line["_type"] == "detection"
        assert line["verdict"]["sensor_id"] == 2
        assert line["verdict"]["severity"] == "medium"
