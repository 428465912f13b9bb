# tests/core/traceability/test_manifest_round_trip.py
"""
Testes de persistência e reconstrução do Manifest (round-trip JSON).

Invariantes:
    - `save_manifest` produz JSON determinístico (chaves ordenadas)
    - `load_manifest(save_manifest(m))` preserva run, inputs, stages e eventos
"""

import json
from datetime import datetime, timedelta, timezone

from atlas_deployflow.core.traceability.manifest import (
    add_event,
    create_manifest,
    load_manifest,
    run_finished,
    save_manifest,
    stage_finished,
    stage_started,
)


T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_manifest_round_trip(tmp_path):
    m = create_manifest(
        run_id="run-001",
        pipeline="demo-app",
        started_at=T0,
        tool_version="0.1.0",
        config_hash="c",
        pipeline_hash="p",
    )
    add_event(m, event_type="run_started", ts=T0)
    stage_started(m, stage_id="build", kind="build", ts=T0)
    stage_finished(
        m,
        stage_id="build",
        ts=T0 + timedelta(seconds=1),
        result={"kind": "build", "status": "success", "summary": "ok", "exit_code": 0},
    )
    run_finished(m, status="succeeded", ts=T0 + timedelta(seconds=1))

    path = tmp_path / "nested" / "run-001.json"
    save_manifest(m, path)
    loaded = load_manifest(path)

    assert loaded.to_dict() == m.to_dict()
    raw = path.read_text(encoding="utf-8")
    assert list(json.loads(raw).keys()) == sorted(json.loads(raw).keys())
