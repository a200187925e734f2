import json

from src.errors import NavigationError, NavigationFailure
from src.ops_logger import OpsLogger


def test_event_envelope_includes_error_kind(tmp_path):
    log = OpsLogger(tmp_path / "logs" / "ops.log")
    log.event("navigation_failed", url="https://acme.com",
              error=NavigationError("https://acme.com", NavigationFailure.SSL_ERROR), mode="website")
    log.event("run_summary", records=3)

    lines = (tmp_path / "logs" / "ops.log").read_text(encoding="utf-8").splitlines()
    first, second = (json.loads(line) for line in lines)
    assert first["event"] == "navigation_failed"
    assert first["error_class"] == "NavigationError"
    assert first["error_kind"] == "ssl_error"
    assert first["mode"] == "website"
    assert second == {**second, "leads_ops": 1, "event": "run_summary", "records": 3}
    assert "url" not in second


def test_unserializable_record_is_still_written(tmp_path):
    log = OpsLogger(tmp_path / "ops.log")
    log.emit({"obj": object()})
    record = json.loads((tmp_path / "ops.log").read_text(encoding="utf-8"))
    assert record["obj"].startswith("<object")
