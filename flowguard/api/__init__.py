"""HTTP API and ingest pipeline around the detection engine."""
