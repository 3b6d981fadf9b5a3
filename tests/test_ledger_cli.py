"""
Operator CLI: each command prints one JSON document and exits 0/1/2.
"""

import importlib.util
import json
from pathlib import Path
from uuid import uuid4

import pytest
import yaml

from ndis_kernel.db.engine import reset_engine

CLI_PATH = Path(__file__).resolve().parents[1] / "scripts" / "ledger_cli.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("ledger_cli", CLI_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def run(cli, tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    config = tmp_path / "ledger.yaml"
    config.write_text(yaml.safe_dump({
        "config_id": "cli-test",
        "database": {"url": f"sqlite:///{tmp_path / 'cli.db'}"},
        "logging": {"level": "WARNING"},
    }))

    def _run(*argv):
        code = cli.main(["--config", str(config), *argv])
        return code, json.loads(capsys.readouterr().out)

    yield _run
    reset_engine()


def test_init_db(run):
    code, out = run("init-db")

    assert code == 0
    assert out == {"command": "init-db", "status": "ok"}


def test_backfill_on_empty_ledger(run):
    run("init-db")

    code, out = run("backfill")

    assert code == 0
    assert (out["processed"], out["skipped"]) == (0, 0)


def test_backfill_unknown_tenant_is_a_ledger_error(run):
    run("init-db")

    code, out = run("backfill", "--tenant", str(uuid4()))

    assert code == 2
    assert out["error"] == "TENANT_NOT_FOUND"


def test_balance_without_budget(run):
    run("init-db")

    code, out = run("balance", "--tenant", str(uuid4()), "--client", str(uuid4()), "--category", "SIL")

    assert code == 2
    assert out["error"] == "NO_BUDGET_FOUND"


def test_verify_empty_tenant(run):
    run("init-db")
    tenant_id = str(uuid4())

    code, out = run("verify", "--tenant", tenant_id)

    assert code == 0
    assert out["ok"] is True
    assert out["budgets"] == []
    assert out["tenant_id"] == tenant_id
