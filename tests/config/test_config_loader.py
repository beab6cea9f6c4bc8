import logging
import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from replboot.config.loader import load_config


def _write(tmp_path: Path, text: str, name: str = "cluster.yaml") -> Path:
    f = tmp_path / name
    f.write_text(textwrap.dedent(text))
    return f


def test_load_config_minimal_ok(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("REPLBOOT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, """
        environment: dev
        cluster:
          scope: test
          members: 3
    """)
    cfg = load_config(f)

    assert cfg.environment == "dev"
    assert cfg.cluster.scope == "test"
    assert cfg.cluster.replication_set_id == "rs0"
    assert cfg.cluster.storage_class_name == "test-sc"
    assert cfg.cluster.quorum == 2
    refs = [r.ref for r in cfg.declared_resources()]
    assert refs[0] == "Namespace/test" and refs[-1] == "StatefulSet/member"


def test_explicit_resources_replace_the_default_set(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("REPLBOOT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, """
        cluster:
          scope: test
        resources:
          - kind: Namespace
            name: test
            scope: test
          - kind: Service
            name: test
            scope: test
            spec: {headless: true, port: 27017}
            depends_on: [Namespace/test]
    """)
    cfg = load_config(f)
    assert [r.ref for r in cfg.declared_resources()] == ["Namespace/test", "Service/test"]


def test_env_vars_and_secrets_are_merged(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("REPLBOOT_SECRETS_FILE", raising=False)
    monkeypatch.setenv("KCTX", "prod-east")
    f = _write(tmp_path, """
        environment: prod
        cluster:
          scope: orders
        kube:
          context: ${KCTX}
        mongo:
          username: admin
    """)
    _write(tmp_path, """
        mongo:
          password: s3cret
    """, name="secrets.yaml")

    cfg = load_config(f)
    assert cfg.kube.context == "prod-east"
    assert cfg.mongo.username == "admin"
    assert cfg.mongo.password == "s3cret"


def test_secrets_file_from_env_overrides_sibling(tmp_path: Path, monkeypatch):
    other = tmp_path / "elsewhere"
    other.mkdir()
    secrets = _write(other, """
        kube:
          ssh:
            host: 10.0.0.5
            password: pw
    """, name="vault.yaml")
    monkeypatch.setenv("REPLBOOT_SECRETS_FILE", str(secrets))
    f = _write(tmp_path, """
        cluster:
          scope: test
    """)

    cfg = load_config(f)
    assert cfg.kube.ssh.host == "10.0.0.5"


def test_invalid_scope_is_rejected(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("REPLBOOT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, """
        cluster:
          scope: Bad_Scope
    """)
    with pytest.raises(ValidationError):
        load_config(f)


def test_even_member_count_is_accepted_with_warning(tmp_path: Path, monkeypatch, caplog):
    monkeypatch.delenv("REPLBOOT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, """
        cluster:
          scope: test
          members: 4
    """)
    logger = logging.getLogger("replboot")
    monkeypatch.setattr(logger, "propagate", True)
    with caplog.at_level(logging.WARNING, logger="replboot"):
        cfg = load_config(f)
    assert cfg.cluster.members == 4
    assert "no extra fault tolerance" in caplog.text


def test_non_mapping_document_is_rejected(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("REPLBOOT_SECRETS_FILE", raising=False)
    f = _write(tmp_path, """
        - scope: test
    """)
    with pytest.raises(ValueError, match="top level must be a mapping"):
        load_config(f)
