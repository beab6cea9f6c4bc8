import json
import subprocess

import pytest
import yaml

from replboot.kube.kubectl import KubectlError, KubectlRunner


class DummyCP:
    def __init__(self, rc=0, out="", err=""):
        self.returncode = rc
        self.stdout = out
        self.stderr = err


def _patch(monkeypatch, *replies):
    calls = []
    queue = list(replies)

    def fake_run(argv, **kwargs):
        calls.append((argv, kwargs))
        return queue.pop(0) if queue else DummyCP(0)

    monkeypatch.setattr(subprocess, "run", fake_run)
    return calls


def test_get_object_builds_argv_and_parses_json(monkeypatch):
    calls = _patch(monkeypatch, DummyCP(0, json.dumps({"kind": "Service", "metadata": {"name": "member"}})))

    obj = KubectlRunner(context="ctx1").get_object("Service", "member", "test")

    assert obj["metadata"]["name"] == "member"
    argv, _ = calls[0]
    assert argv == ["kubectl", "--context", "ctx1", "get", "service", "member", "-o", "json", "-n", "test"]


def test_get_object_not_found_is_none(monkeypatch):
    _patch(monkeypatch, DummyCP(1, "", 'Error from server (NotFound): services "member" not found'))
    assert KubectlRunner().get_object("Service", "member", "test") is None


def test_get_object_other_failure_raises(monkeypatch):
    _patch(monkeypatch, DummyCP(1, "", "Unable to connect to the server: dial tcp: i/o timeout"))
    with pytest.raises(KubectlError) as exc:
        KubectlRunner().get_object("Service", "member", "test")
    assert not exc.value.not_found


def test_apply_objects_create_only_pipes_yaml(monkeypatch):
    calls = _patch(monkeypatch)
    objs = [
        {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "test"}},
        {"apiVersion": "v1", "kind": "Service", "metadata": {"name": "member", "namespace": "test"}},
    ]

    KubectlRunner().apply_objects(objs, create_only=True)

    argv, kwargs = calls[0]
    assert argv[1:] == ["create", "-f", "-"]
    assert [d["kind"] for d in yaml.safe_load_all(kwargs["input"])] == ["Namespace", "Service"]


def test_apply_objects_already_exists(monkeypatch):
    _patch(monkeypatch, DummyCP(1, "", 'Error from server (AlreadyExists): namespaces "test" already exists'))
    with pytest.raises(KubectlError) as exc:
        KubectlRunner().apply_objects([{"kind": "Namespace", "metadata": {"name": "test"}}], create_only=True)
    assert exc.value.already_exists


def test_apply_objects_nothing_to_do(monkeypatch):
    calls = _patch(monkeypatch)
    KubectlRunner().apply_objects([])
    assert calls == []


def test_delete_object_reports_whether_something_was_deleted(monkeypatch):
    calls = _patch(monkeypatch, DummyCP(0, "service/member\n"), DummyCP(0, ""))
    k = KubectlRunner()

    assert k.delete_object("Service", "member", "test") is True
    assert k.delete_object("Service", "member", "test") is False
    assert "--ignore-not-found" in calls[0][0]


def test_exec_in_pod_argv(monkeypatch):
    calls = _patch(monkeypatch, DummyCP(0, "{}\n"))

    rc, out, _ = KubectlRunner().exec_in_pod("member-0", "test", ["mongosh", "--quiet"], container="mongod")

    assert rc == 0
    assert calls[0][0] == ["kubectl", "exec", "member-0", "-n", "test", "-c", "mongod", "--", "mongosh", "--quiet"]


def test_timeout_becomes_kubectl_error(monkeypatch):
    def fake_run(argv, **kwargs):
        raise subprocess.TimeoutExpired(argv, kwargs.get("timeout"))

    monkeypatch.setattr(subprocess, "run", fake_run)
    with pytest.raises(KubectlError, match="timed out"):
        KubectlRunner(timeout=5).list_items("Pod", "test")


class FakeSSH:
    def __init__(self, rc=0, out="", err=""):
        self.reply = (rc, out, err)
        self.commands = []
        self.files = {}

    def run(self, cmd, *, sudo=False, timeout=None):
        self.commands.append((cmd, sudo))
        return self.reply

    def put_text(self, content, remote_path, *, sudo=False):
        self.files[remote_path] = content


def test_ssh_path_uploads_manifest_and_runs_with_sudo(monkeypatch):
    def no_local(*a, **kw):
        raise AssertionError("subprocess must not be used over ssh")

    monkeypatch.setattr(subprocess, "run", no_local)
    ssh = FakeSSH()

    KubectlRunner(kubeconfig="/etc/kubernetes/admin.conf", ssh=ssh).apply_objects(
        [{"kind": "Namespace", "metadata": {"name": "test"}}]
    )

    (remote, content), = ssh.files.items()
    cmd, sudo = ssh.commands[0]
    assert sudo is True
    assert cmd.startswith("kubectl --kubeconfig /etc/kubernetes/admin.conf apply -f ")
    assert cmd.endswith(remote)
    assert "name: test" in content
