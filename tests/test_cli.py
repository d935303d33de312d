"""Tests for the fkload command line."""

import json
import sqlite3
from pathlib import Path

import pytest
from click.testing import CliRunner

from fkload.cli.main import cli


@pytest.fixture
def db_url(tmp_path: Path, address_schema: str) -> str:
    path = tmp_path / "app.db"
    conn = sqlite3.connect(path)
    conn.executescript(address_schema)
    conn.close()
    return f"sqlite:///{path}"


@pytest.fixture
def runner(tmp_path: Path, monkeypatch) -> CliRunner:
    # Keep config discovery away from any fkload.toml above the test
    monkeypatch.chdir(tmp_path)
    return CliRunner()


def count(db_url: str, table: str) -> int:
    conn = sqlite3.connect(db_url.split("://", 1)[1][1:])
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()


def test_constraints_json(runner, db_url):
    result = runner.invoke(cli, ["--url", db_url, "constraints", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert {(c["source_table"], c["source_column"]) for c in data} == {
        ("address", "street"),
        ("address", "region"),
        ("region", "parent"),
    }


def test_constraints_all_kinds(runner, db_url):
    result = runner.invoke(cli, ["--url", db_url, "constraints", "--all"])

    assert result.exit_code == 0, result.output
    assert "region_pkey  primary_key  region.id" in result.output
    assert "address_region_fkey  foreign_key  address.region -> region.id" in result.output


def test_order(runner, db_url):
    result = runner.invoke(cli, ["--url", db_url, "order"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == [
        "1. region  [self: parent]",
        "2. street",
        "3. address  (after region, street)",
    ]


def test_order_subset(runner, db_url):
    result = runner.invoke(cli, ["--url", db_url, "order", "address", "region"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[0] == "1. region  [self: parent]"


def test_load(runner, db_url, tmp_path: Path):
    row_file = tmp_path / "rows.yaml"
    row_file.write_text(
        """
address:
  - street: !tmp s1
    region: !tmp r1
street:
  - id: !tmp s1
    name: Main Street
region:
  - id: !tmp r1
    name: North
"""
    )

    result = runner.invoke(cli, ["--url", db_url, "load", str(row_file)])

    assert result.exit_code == 0, result.output
    assert "address: 1 inserted, 0 updated" in result.output
    assert count(db_url, "address") == 1


def test_load_dry_run(runner, db_url, tmp_path: Path):
    row_file = tmp_path / "rows.json"
    row_file.write_text(json.dumps({"street": [{"id": {"$tmp": "s1"}, "name": "Main Street"}]}))

    result = runner.invoke(cli, ["--url", db_url, "load", "--dry-run", str(row_file)])

    assert result.exit_code == 0, result.output
    assert "Dry run" in result.output
    assert count(db_url, "street") == 0


def test_load_error_exits_nonzero(runner, db_url, tmp_path: Path):
    row_file = tmp_path / "rows.yaml"
    row_file.write_text("invoice:\n  - total: 3\n")

    result = runner.invoke(cli, ["--url", db_url, "load", str(row_file)])

    assert result.exit_code == 1
    assert "Table 'invoice' not found" in result.output


def test_config_file(runner, db_url, tmp_path: Path):
    config_file = tmp_path / "fkload.toml"
    config_file.write_text(f'[database]\nurl = "{db_url}"\n')

    result = runner.invoke(cli, ["order", "street"])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "1. street"


def test_invalid_config_exits_with_message(runner, tmp_path: Path):
    (tmp_path / "fkload.toml").write_text('[load]\nlog_level = "LOUD"\n')

    result = runner.invoke(cli, ["order"])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "log_level" in result.output
