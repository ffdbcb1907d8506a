"""
Tests for the command-line runner.
"""

import io
import json

from flowguard.runner import build_parser, run_simulation


class TestRunner:
    """Tests for argument parsing and the simulate command."""

    def test_parse_simulate(self):
        args = build_parser().parse_args(["simulate", "--seed", "3", "--duration", "10"])

        assert args.seed == 3
        assert args.duration == 10.0
        assert args.func is run_simulation

    def test_simulation_prints_json_lines(self):
        args = build_parser().parse_args(["simulate", "--seed", "3", "--sensors", "2", "--duration", "60"])
        out = io.StringIO()

        alerts = run_simulation(args, stream=out)

        lines = [json.loads(line) for line in out.getvalue().splitlines()]
        assert len(lines) == alerts
        assert all(line["_type"] == "detection" for line in lines)
        assert all(line["verdict"]["severity"] in ("medium", "high") for line in lines)
