"""Pytest configuration and shared helpers.

No sys.path hacks - tests import from the installed opfp package.
"""

import json
import stat
import struct
import sys
from pathlib import Path
from typing import Dict, Optional

import pytest

from opfp.kernel.snapshot import (
    NUM_REGISTERS,
    PAGE_SIZE,
    VERSION_SINGLE_THREADED,
    SingleThreadedState,
)


def h(byte: int) -> bytes:
    """32-byte hash made of one repeated byte."""
    return bytes([byte]) * 32


def hx(byte: int) -> str:
    return "0x" + h(byte).hex()


def rollup_config_dict() -> dict:
    """A small portable rollup config in rollup.json shape."""
    return {
        "genesis": {
            "l1": {"hash": hx(0x11), "number": 100},
            "l2": {"hash": hx(0x22), "number": 0},
            "l2_time": 1700000000,
            "system_config": {
                "batcherAddr": "0x" + "33" * 20,
                "overhead": "0x" + "00" * 31 + "bc",
                "scalar": "0x" + "00" * 29 + "0a6fe0",
                "gasLimit": 30000000,
            },
        },
        "block_time": 2,
        "max_sequencer_drift": 600,
        "seq_window_size": 3600,
        "channel_timeout": 300,
        "l1_chain_id": 1,
        "l2_chain_id": 901,
        "regolith_time": 0,
        "canyon_time": 10,
        "batch_inbox_address": "0x" + "ff" * 20,
        "deposit_contract_address": "0x" + "44" * 20,
        "l1_system_config_address": "0x" + "55" * 20,
    }


def genesis_dict() -> dict:
    return rollup_config_dict()["genesis"]


@pytest.fixture
def write_script(tmp_path):
    """Write an executable Python script and return its path.

    The body runs with ``argv`` (the script's arguments) and ``here`` (its
    directory) in scope, and every invocation's argv is appended to
    ``<name>.calls.json`` next to the script.
    """
    def _write(name: str, body: str) -> Path:
        path = tmp_path / name
        calls = tmp_path / f"{name}.calls.json"
        source = (
            f"#!{sys.executable}\n"
            "import json, os, sys\n"
            "from pathlib import Path\n"
            "argv = sys.argv[1:]\n"
            "here = Path(__file__).resolve().parent\n"
            f"calls = Path({str(calls)!r})\n"
            "previous = json.loads(calls.read_text()) if calls.exists() else []\n"
            "calls.write_text(json.dumps(previous + [argv]))\n"
            f"{body}\n"
        )
        path.write_text(source, encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path
    return _write


def read_calls(script: Path) -> list:
    calls = script.parent / f"{script.name}.calls.json"
    if not calls.exists():
        return []
    return json.loads(calls.read_text(encoding="utf-8"))


def flag_value(argv: list, flag: str) -> str:
    return argv[argv.index(flag) + 1]


def encode_snapshot(state: SingleThreadedState, pages: Optional[Dict[int, bytes]] = None) -> bytes:
    """Encode a version-0 emulator snapshot, the layout the emulator writes with --output."""
    pages = pages or {}
    out = bytearray([VERSION_SINGLE_THREADED])
    out += struct.pack(">I", len(pages))
    for index in sorted(pages):
        page = pages[index]
        assert len(page) == PAGE_SIZE, f"page {index} must be {PAGE_SIZE} bytes"
        out += struct.pack(">I", index) + page
    out += state.preimage_key
    out += struct.pack(">IIIIII", state.preimage_offset, state.pc, state.next_pc, 0, 0, state.heap)
    out += struct.pack(">BB", state.exit_code, 1 if state.exited else 0)
    out += struct.pack(">Q", state.step)
    out += struct.pack(">" + "I" * NUM_REGISTERS, *state.registers)
    out += struct.pack(">I", len(state.last_hint)) + state.last_hint
    return bytes(out)
