#!/usr/bin/env python3
"""
Command-line runner.

  simulate : feed simulated sensor traffic to the engine (or a remote API)
  capture  : sniff a live interface with scapy and analyze every packet
  serve    : run the HTTP API

Verdicts that raise an alert or a prediction are printed as JSON lines.
"""
import argparse
import json
import logging
import sys
import time
import urllib.error
import urllib.request

from flowguard.utils import config as cfg
from flowguard.utils import logger as log_cfg

logger = logging.getLogger(__name__)


def _post(url, observation, timeout=3):
    req = urllib.request.Request(url, data=json.dumps(observation).encode('utf-8'),
                                 headers={'Content-Type': 'application/json', 'User-Agent': 'FlowGuard/0.1'})
    with urllib.request.urlopen(req, timeout=timeout) as response:
        return json.loads(response.read().decode('utf-8'))


def run_simulation(args, stream=None):
    from flowguard.api.ingest import print_event
    from flowguard.detection.engine import AnomalyEngine
    from flowguard.sensors.simulator import SensorSimulator

    sim_cfg = cfg.get('simulator') or {}
    simulator = SensorSimulator(seed=args.seed, sensors=int(args.sensors or sim_cfg.get('sensors', 6)))
    engine = None if args.url else AnomalyEngine()
    delay = args.delay if args.delay is not None else 0.0
    alerts = 0

    for observation in simulator.generate(args.duration * 1000.0):
        if args.url:
            try:
                event = _post(args.url, observation)
            except (urllib.error.URLError, OSError, ValueError) as e:
                logger.warning("Analysis API unavailable (%s); continuing", e)
                continue
            if event.get('severity', 'none') != 'none':
                alerts += 1
                print(json.dumps({'_type': 'detection', 'verdict': event}), file=stream or sys.stdout, flush=True)
        else:
            verdict = engine.analyze_and_predict(observation)
            if verdict.is_threat or verdict.prediction.is_predicted:
                alerts += 1
            print_event(verdict, observation, stream=stream)
        if delay:
            time.sleep(delay)

    if engine is not None:
        logger.info("Simulation finished: %s", engine.stats())
    return alerts


def run_capture(args):
    from flowguard.api.ingest import IngestPipeline, print_event
    from flowguard.capture.scapy_capture import ScapyCapture

    pipeline = IngestPipeline()
    pipeline.add_handler(print_event)
    capture = ScapyCapture(interface=args.interface, bpf_filter=args.filter, sensor_id=args.sensor_id)
    try:
        capture.start(pipeline.submit)
    except KeyboardInterrupt:
        pass
    finally:
        capture.stop()
        pipeline.stop()


def run_server(args):
    from flowguard.api.app import run

    run(host=args.host, port=args.port)


def build_parser():
    parser = argparse.ArgumentParser(prog='flowguard', description="Flow-based anomaly detection runner")
    parser.add_argument("--log-level", default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="analyze simulated sensor traffic")
    sim.add_argument("--seed", type=int, default=None)
    sim.add_argument("--sensors", type=int, default=None)
    sim.add_argument("--duration", type=float, default=300.0, help="simulated seconds of traffic")
    sim.add_argument("--delay", type=float, default=None, help="real seconds to sleep between observations")
    sim.add_argument("--url", default=None, help="POST observations to this /api/analyze URL instead")
    sim.set_defaults(func=run_simulation)

    cap = sub.add_parser("capture", help="analyze live traffic")
    cap.add_argument("--interface", default=None)
    cap.add_argument("--filter", default="ip or ip6")
    cap.add_argument("--sensor-id", default=None)
    cap.set_defaults(func=run_capture)

    srv = sub.add_parser("serve", help="run the HTTP API")
    srv.add_argument("--host", default=None)
    srv.add_argument("--port", type=int, default=None)
    srv.set_defaults(func=run_server)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    log_cfg.configure(args.log_level)
    args.func(args)


if __name__ == '__main__':
    main()
