import logging

import pytest
from typer.testing import CliRunner

import replboot.cli.app as cli
from replboot.bootstrap.health import TopologyHealthChecker
from replboot.bootstrap.identity import MemberIdentityAllocator
from replboot.bootstrap.initiator import TopologyInitiator
from replboot.bootstrap.orchestrator import BootstrapOrchestrator
from replboot.bootstrap.probe import ReadinessProbe
from replboot.bootstrap.provisioner import ResourceProvisioner
from replboot.kube.kubectl import KubectlRunner

from fakes import FakeBackend, FakeChannel, FakeClock, FakeReadiness

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logger():
    yield
    logger = logging.getLogger("replboot")
    for h in list(logger.handlers):
        h.close()
    logger.handlers.clear()
    logger.propagate = True


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "bootstrap.yaml"
    path.write_text(
        f"""
cluster:
  scope: test
  members: 3
audit:
  directory: {tmp_path / "logs"}
  lease_directory: {tmp_path / "leases"}
"""
    )
    return path


def _fake_factory(backend):
    def build(cfg, bus=None, **kw):
        clock = FakeClock()
        channel = FakeChannel(MemberIdentityAllocator().topology(cfg.cluster).addresses)
        return BootstrapOrchestrator(
            provisioner=ResourceProvisioner(backend),
            readiness=FakeReadiness(),
            initiator=TopologyInitiator(
                channel,
                probe=ReadinessProbe(clock=clock, max_errors=0),
                reachability=cfg.policies.reachability_probe,
            ),
            health_checker=TopologyHealthChecker(channel, clock=clock),
            policies=cfg.policies,
            clock=clock,
            bus=bus,
        )

    return build


def test_plan_prints_waves(config):
    result = runner.invoke(cli.app, ["plan", "-c", str(config)])
    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "wave 1: Namespace/test",
        "wave 2: StorageClass/test-sc, Service/test",
        "wave 3: PersistentVolumeClaim/data-member-0, PersistentVolumeClaim/data-member-1, PersistentVolumeClaim/data-member-2",
        "wave 4: StatefulSet/member",
    ]


def test_identities_prints_one_row_per_member(config):
    result = runner.invoke(cli.app, ["identities", "--config", str(config)])
    assert result.exit_code == 0
    assert result.output.splitlines()[0] == "0\tmember-0\tmember-0.test"
    assert len(result.output.splitlines()) == 3


def test_invalid_config_exits_2(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("cluster:\n  scope: Not_A_Label\n")
    result = runner.invoke(cli.app, ["plan", "-c", str(bad)])
    assert result.exit_code == 2
    assert "Invalid config" in result.output


def test_bootstrap_succeeds_and_writes_audit(config, tmp_path, monkeypatch):
    backend = FakeBackend()
    monkeypatch.setattr(cli, "build_orchestrator", _fake_factory(backend))

    result = runner.invoke(cli.app, ["bootstrap", "-c", str(config)])

    assert result.exit_code == 0, result.output
    assert "test: Done (members=3 primary=0)" in result.output
    assert len(backend.creates) == 7
    assert len(list((tmp_path / "logs").glob("test-*.jsonl"))) == 1
    assert not (tmp_path / "leases" / "test.lock").exists()


def test_bootstrap_closes_the_controller_session(config, monkeypatch):
    class Session:
        closed = False

        def close(self):
            self.closed = True

    session = Session()
    handed = []
    build = _fake_factory(FakeBackend())

    def factory(cfg, bus=None, **kw):
        handed.append(kw.get("kubectl"))
        return build(cfg, bus)

    monkeypatch.setattr(cli, "build_kubectl", lambda cfg: KubectlRunner(ssh=session))
    monkeypatch.setattr(cli, "build_orchestrator", factory)

    result = runner.invoke(cli.app, ["bootstrap", "-c", str(config)])

    assert result.exit_code == 0, result.output
    assert handed[0].ssh is session
    assert session.closed


def test_bootstrap_conflict_exits_1_and_asks_for_operator(config, monkeypatch):
    backend = FakeBackend()
    backend.live[("PersistentVolumeClaim", "data-member-0", "test")] = {"storage": "5Gi", "storage_class": "test-sc"}
    monkeypatch.setattr(cli, "build_orchestrator", _fake_factory(backend))

    result = runner.invoke(cli.app, ["bootstrap", "-c", str(config)])

    assert result.exit_code == 1
    assert "phase Provisioning failed (conflict)" in result.output
    assert "Operator action needed" in result.output


def test_bootstrap_refused_while_scope_is_leased(config, tmp_path, monkeypatch):
    leases = tmp_path / "leases"
    leases.mkdir()
    (leases / "test.lock").write_text("pid=1 since=2026-01-01T00:00:00+00:00\n")

    def must_not_build(*a, **kw):
        raise AssertionError("orchestrator must not be built")

    monkeypatch.setattr(cli, "build_orchestrator", must_not_build)
    result = runner.invoke(cli.app, ["bootstrap", "-c", str(config)])

    assert result.exit_code == 3
    assert "already being bootstrapped" in result.output
