"""
Tests for the audit ledger — NDJSON run events.
"""

import json

from src.models.result import BranchResult, DeploymentResult, RunResult
from src.persistence.audit import AuditWriter


def _events(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestAuditWriter:

    def test_creates_file_and_directory(self, tmp_path):
        path = tmp_path / "audit" / "runs.ndjson"

        AuditWriter(path)

        assert path.exists()
        assert path.read_text() == ""

    def test_emit_appends_one_line_per_event(self, tmp_path):
        audit = AuditWriter(tmp_path / "runs.ndjson")

        first = audit.emit("run_start", run_id="R-1")
        second = audit.emit("run_end", run_id="R-1", level="error", details={"failed": 1})
        events = _events(audit.path)

        assert [e["event_id"] for e in events] == [first, second]
        assert events[0]["type"] == "run_start"
        assert events[0]["ts_iso"].endswith("Z")
        assert "details" not in events[0]
        assert events[1]["level"] == "error"
        assert events[1]["details"] == {"failed": 1}

    def test_release_result_failed(self, tmp_path):
        audit = AuditWriter(tmp_path / "runs.ndjson")
        result = DeploymentResult.failed(
            release="3.1.0",
            branch="master",
            stage="fetch",
            error_code="artifact_failed",
            error_message="HTTP 404",
            workspace="/tmp/Target-x",
        )

        audit.emit_release_result("R-1", result)
        event = _events(audit.path)[0]

        assert event["level"] == "error"
        assert event["branch"] == "master"
        assert event["release"] == "3.1.0"
        assert event["details"]["error"] == {"code": "artifact_failed", "message": "HTTP 404", "stage": "fetch"}
        assert event["details"]["workspace"] == "/tmp/Target-x"

    def test_release_result_skipped_carries_reason(self, tmp_path):
        audit = AuditWriter(tmp_path / "runs.ndjson")

        audit.emit_release_result("R-1", DeploymentResult.skipped("3.2.0", "master", "halted"))

        assert _events(audit.path)[0]["details"]["skip_reason"] == "halted"

    def test_branch_and_run_end(self, tmp_path):
        audit = AuditWriter(tmp_path / "runs.ndjson")
        branch = BranchResult(branch="master", name_prefix="3.", error="HTTP 502")
        run = RunResult(run_id="R-1", started_at="2026-02-04T16:00:00+00:00", branches=[branch])

        audit.emit_branch_end("R-1", branch)
        audit.emit_run_end(run)
        branch_end, run_end = _events(audit.path)

        assert branch_end["level"] == "error"
        assert branch_end["details"]["error"] == "HTTP 502"
        assert run_end["details"]["healthy"] is False
