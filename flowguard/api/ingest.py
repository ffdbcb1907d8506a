"""Ingestion pipeline forwarding observations to the detection engine.

`IngestPipeline.submit(observation)` enqueues an observation; a single worker
thread drains the queue in order and hands each verdict to the registered
handlers. Handlers are where alert broadcast, ledger logging, notifications or
counter-measures plug in; the engine itself knows nothing about them.

Detection and handler errors are caught and logged; they do not propagate to
the caller or stop the worker.
"""
from __future__ import annotations

import json
import logging
import queue
import sys
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from flowguard.detection.engine import AnomalyEngine
from flowguard.detection.types import Verdict
from flowguard.utils import config as cfg

logger = logging.getLogger(__name__)

VerdictHandler = Callable[[Verdict, Dict[str, Any]], None]


def severity_for(verdict: Verdict) -> str:
    """Map a verdict onto the dashboard's alert severities."""
    if not verdict.is_threat and not verdict.prediction.is_predicted:
        return 'none'
    if verdict.confidence > 0.9 or verdict.prediction.prediction_confidence > 90:
        return 'high'
    return 'medium'


def to_event(verdict: Verdict, observation: Dict[str, Any]) -> Dict[str, Any]:
    event = verdict.to_dict()
    event['severity'] = severity_for(verdict)
    if isinstance(observation, dict) and observation.get('sensor_id', observation.get('sensorId')) is not None:
        event['sensor_id'] = observation.get('sensor_id', observation.get('sensorId'))
    return event


def print_event(verdict: Verdict, observation: Dict[str, Any], stream=None, only_alerts: bool = True) -> None:
    """Write a verdict as one JSON line so external monitors can follow it."""
    event = to_event(verdict, observation)
    if only_alerts and event['severity'] == 'none':
        return
    out = {'_type': 'detection', 'timestamp': time.time(), 'verdict': event}
    print(json.dumps(out, default=str), file=stream or sys.stdout, flush=True)


class IngestPipeline:
    def __init__(self, engine: Optional[AnomalyEngine] = None, maxsize: Optional[int] = None) -> None:
        self.engine = engine
        # bounded queue to avoid unbounded memory growth under load
        self.maxsize = int(maxsize if maxsize is not None else (cfg.get('queue_maxsize') or 5000))
        self._queue: queue.Queue = queue.Queue(maxsize=self.maxsize)
        self._handlers: List[VerdictHandler] = []
        self._worker_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self.dropped = 0

    def add_handler(self, handler: VerdictHandler) -> None:
        self._handlers.append(handler)

    def remove_handler(self, handler: VerdictHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def start(self) -> None:
        with self._lock:
            if self.engine is None:
                self.engine = AnomalyEngine()
            if self._worker_thread is None or not self._worker_thread.is_alive():
                self._stop_event.clear()
                self._worker_thread = threading.Thread(target=self._worker, name='flowguard-ingest', daemon=True)
                self._worker_thread.start()

    def submit(self, observation: Dict[str, Any], timeout: float = 0.2) -> bool:
        """Enqueue an observation; returns False when it had to be dropped.

        This call is non-blocking beyond `timeout`.
        """
        self.start()
        try:
            self._queue.put(observation, timeout=timeout)
            return True
        except queue.Full:
            self.dropped += 1
            logger.warning('Ingest queue full; dropping observation')
            return False

    def join(self) -> None:
        """Block until every queued observation has been processed."""
        self._queue.join()

    def stop(self) -> None:
        """Drain the queue, then stop the worker thread."""
        if self._worker_thread is not None and self._worker_thread.is_alive():
            self._queue.join()
        self._stop_event.set()
        if self._worker_thread is not None:
            self._worker_thread.join(timeout=2.0)
            self._worker_thread = None

    def _worker(self) -> None:
        while not self._stop_event.is_set():
            try:
                observation = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._process(observation)
            finally:
                self._queue.task_done()

    def _process(self, observation: Dict[str, Any]) -> None:
        try:
            verdict = self.engine.analyze_and_predict(observation)
        except Exception as e:
            logger.exception('Error running detection on observation: %s', e)
            return
        for handler in list(self._handlers):
            try:
                handler(verdict, observation)
            except Exception:
                logger.exception('Verdict handler %r failed', handler)


_pipeline: Optional[IngestPipeline] = None


def get_pipeline() -> IngestPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = IngestPipeline()
    return _pipeline


def ingest_observation(observation: Dict[str, Any]) -> bool:
    """Enqueue an observation on the shared pipeline."""
    try:
        return get_pipeline().submit(observation)
    except Exception as e:
        logger.exception('Failed to enqueue observation for detection: %s', e)
        return False


def reload_engine(engine: Optional[AnomalyEngine] = None) -> None:
    """Replace the shared pipeline's engine (a fresh one from config by default)."""
    pipeline = get_pipeline()
    pipeline.engine = engine or AnomalyEngine()
    logger.info('Detection engine replaced')


def stop() -> None:
    global _pipeline
    if _pipeline is not None:
        _pipeline.stop()
        _pipeline = None
