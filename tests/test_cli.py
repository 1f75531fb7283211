"""CLI tests for from-op-program and run-op-program."""

import json
import tempfile

import pytest

from opfp import cli
from opfp.kernel.fixture import FaultProofFixture, FaultProofInputs

from conftest import h


def _run_cli(args):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(args)
    return excinfo.value.code


def _write_fixture(path):
    inputs = FaultProofInputs(l1_head=h(1), l2_head=h(2), l2_claim=h(3), l2_output_root=h(4), l2_block_number=7)
    path.write_text(FaultProofFixture(inputs=inputs).to_json(), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in ("OPFP_L1_RPC_URL", "OPFP_L2_RPC_URL", "OPFP_BEACON_URL", "OPFP_ROLLUP_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path / "tmp"))
    (tmp_path / "tmp").mkdir()


def test_no_command_prints_help(capsys):
    assert _run_cli([]) == 1
    assert "from-op-program" in capsys.readouterr().out


def test_version(capsys):
    assert _run_cli(["--version"]) == 0
    assert capsys.readouterr().out.startswith("opfp ")


def test_run_op_program_prints_stats(tmp_path, write_script, capsys):
    program = write_script("op-program", "sys.exit(0)")
    fixture = _write_fixture(tmp_path / "fixture.json")
    stats_path = tmp_path / "stats.json"
    code = _run_cli(["run-op-program", "-o", str(program), "-f", str(fixture), "--output", str(stats_path)])
    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert set(out) == {"runtime"}
    assert json.loads(stats_path.read_text()) == out
    assert list((tmp_path / "tmp" / "run-op-program").iterdir()) == []


def test_run_op_program_failure(tmp_path, write_script, capsys):
    program = write_script("op-program", "sys.exit(4)")
    fixture = _write_fixture(tmp_path / "fixture.json")
    assert _run_cli(["run-op-program", "-o", str(program), "-f", str(fixture)]) == 1
    assert "Error:" in capsys.readouterr().err


def test_run_op_program_cannon_needs_state(tmp_path, capsys):
    fixture = _write_fixture(tmp_path / "fixture.json")
    code = _run_cli(["run-op-program", "-o", "op-program", "-f", str(fixture), "-c", "cannon"])
    assert code == 1
    assert "requires both a state and a meta path" in capsys.readouterr().err


def test_run_op_program_bad_fixture(tmp_path, capsys):
    path = tmp_path / "fixture.json"
    path.write_text("[]")
    assert _run_cli(["run-op-program", "-o", "op-program", "-f", str(path), "-vv"]) == 1
    assert "Invalid fixture file" in capsys.readouterr().err


def test_from_op_program_requires_urls(tmp_path, capsys):
    code = _run_cli([
        "from-op-program", "-o", "op-program", "--l2-block", "10",
        "--chain-name", "op-mainnet", "--output", str(tmp_path / "f.json"),
    ])
    assert code == 1
    assert "--l1-rpc-url is required (or set OPFP_L1_RPC_URL)" in capsys.readouterr().err


def test_from_op_program_urls_from_env(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("OPFP_L1_RPC_URL", "http://127.0.0.1:1")
    monkeypatch.setenv("OPFP_L2_RPC_URL", "http://127.0.0.1:1")
    monkeypatch.setenv("OPFP_BEACON_URL", "http://127.0.0.1:1")
    code = _run_cli([
        "from-op-program", "-o", "op-program", "--l2-block", "10",
        "--chain-name", "op-mainnet", "--output", str(tmp_path / "f.json"),
    ])
    assert code == 1
    assert "--rollup-url is required (or set OPFP_ROLLUP_URL)" in capsys.readouterr().err


def test_from_op_program_rejects_block_zero(tmp_path, capsys):
    code = _run_cli([
        "from-op-program", "-o", "op-program", "--l2-block", "0",
        "--l1-rpc-url", "a", "--l2-rpc-url", "b", "--beacon-url", "c", "--rollup-url", "d",
        "--output", str(tmp_path / "f.json"),
    ])
    assert code == 1
    assert "l2_block" in capsys.readouterr().err


def test_from_op_program_network_failure(tmp_path, capsys):
    code = _run_cli([
        "from-op-program", "-o", "op-program", "--l2-block", "10", "--chain-name", "op-mainnet",
        "--l1-rpc-url", "http://127.0.0.1:1", "--l2-rpc-url", "http://127.0.0.1:1",
        "--beacon-url", "http://127.0.0.1:1", "--rollup-url", "http://127.0.0.1:1",
        "--output", str(tmp_path / "f.json"),
    ])
    assert code == 1
    assert "optimism_outputAtBlock" in capsys.readouterr().err
    assert not (tmp_path / "f.json").exists()


def test_from_op_program_malformed_registry(tmp_path, capsys):
    registry = tmp_path / "registry.json"
    registry.write_text("[1, 2]")
    code = _run_cli([
        "from-op-program", "-o", "op-program", "--l2-block", "10", "-vv",
        "--l1-rpc-url", "a", "--l2-rpc-url", "b", "--beacon-url", "c", "--rollup-url", "d",
        "--registry", str(registry), "--output", str(tmp_path / "f.json"),
    ])
    assert code == 1
    err = capsys.readouterr().err
    assert err.count("Malformed registry") == 1
    assert err.startswith("Error: Malformed registry")
