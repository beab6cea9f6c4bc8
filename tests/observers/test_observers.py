import json
import logging

from replboot.observers.console import ConsoleObserver
from replboot.observers.dispatcher import EventBus
from replboot.observers.events import HealthObserved, PhaseFailed, RunStarted, new_ctx
from replboot.observers.jsonfile import JsonFileObserver, audit_path
from replboot.observers.logger import LoggerObserver

from fakes import Capture


class Exploding:
    def notify(self, event):
        raise RuntimeError("observer bug")


def test_bus_keeps_delivering_when_an_observer_fails():
    cap = Capture()
    bus = EventBus([Exploding(), cap])
    bus.emit(RunStarted(members=3, **new_ctx("dev", "test", run_id="r1")))

    assert cap.names() == ["RunStarted"]


def test_json_file_observer_appends_one_line_per_event(tmp_path):
    path = audit_path(tmp_path, "test", "r1")
    assert path.name.startswith("test-") and path.name.endswith("-r1.jsonl")

    obs = JsonFileObserver(path)
    ctx = new_ctx("dev", "test", run_id="r1")
    obs.notify(RunStarted(members=3, **ctx))
    obs.notify(PhaseFailed(phase="Provisioning", kind="conflict", attempts=1, error="PVC too small", **ctx))

    lines = [json.loads(l) for l in path.read_text().splitlines()]
    assert [l["type"] for l in lines] == ["RunStarted", "PhaseFailed"]
    assert lines[1]["scope"] == "test"
    assert lines[1]["kind"] == "conflict"


def test_logger_observer_writes_event_line(caplog):
    logger = logging.getLogger("test-observer")
    with caplog.at_level(logging.INFO, logger="test-observer"):
        LoggerObserver(logger).notify(
            HealthObserved(state="Healthy", roles={0: "Primary"}, unreachable=[], **new_ctx("dev", "test"))
        )
    assert "[EVENT] HealthObserved" in caplog.text
    assert "state=Healthy" in caplog.text


def test_console_observer_prints_scope_and_data(capsys):
    ConsoleObserver().notify(RunStarted(members=3, **new_ctx("dev", "test", run_id="r1")))
    out = capsys.readouterr().out
    assert "RunStarted scope=test" in out
    assert "members=3" in out


def test_logger_observer_uses_error_level_for_failures(caplog):
    logger = logging.getLogger("test-observer")
    with caplog.at_level(logging.INFO, logger="test-observer"):
        LoggerObserver(logger).notify(
            PhaseFailed(phase="Initiating", kind="unreachable", attempts=3, error="no member reachable", **new_ctx("dev", "test"))
        )
    (record,) = caplog.records
    assert record.levelno == logging.ERROR
    assert "kind=unreachable" in record.getMessage()
