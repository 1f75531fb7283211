"""Decoder for the emulator's versioned state snapshot (pure logic).

Layout (big-endian), after a one-byte version:
- u32 page count, then per page: u32 page index + 4096 bytes of page data
- 32-byte preimage key
- u32 preimage offset, pc, next pc, lo, hi, heap
- u8 exit code, u8 exited flag
- u64 step
- 32 x u32 registers
- u32 length + last hint bytes

Only version 0 (single-threaded) is decodable. Snapshots may be gzip-compressed.
"""

import gzip
import zlib
import struct
from dataclasses import dataclass
from typing import Tuple

from opfp.errors import SnapshotDecodeError


VERSION_SINGLE_THREADED = 0
PAGE_SIZE = 4096
NUM_REGISTERS = 32
GZIP_MAGIC = b"\x1f\x8b"


@dataclass(frozen=True)
class SingleThreadedState:
    """The subset of emulator state the orchestrator consumes."""
    preimage_key: bytes
    preimage_offset: int
    pc: int
    next_pc: int
    heap: int
    exit_code: int
    exited: bool
    step: int
    registers: Tuple[int, ...]
    last_hint: bytes
    page_count: int


@dataclass(frozen=True)
class VersionedState:
    version: int
    state: SingleThreadedState

    @property
    def step(self) -> int:
        return self.state.step


class _Reader:
    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def take(self, n: int, what: str) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise SnapshotDecodeError(
                f"Truncated snapshot reading {what}: need {n} bytes at offset {self._pos}, "
                f"have {len(self._data) - self._pos}"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def u8(self, what: str) -> int:
        return self.take(1, what)[0]

    def u32(self, what: str) -> int:
        return struct.unpack(">I", self.take(4, what))[0]

    def u64(self, what: str) -> int:
        return struct.unpack(">Q", self.take(8, what))[0]


def _decode_single_threaded(r: _Reader) -> SingleThreadedState:
    page_count = r.u32("page count")
    for i in range(page_count):
        r.u32(f"page {i} index")
        r.take(PAGE_SIZE, f"page {i} data")
    preimage_key = r.take(32, "preimage key")
    preimage_offset = r.u32("preimage offset")
    pc = r.u32("pc")
    next_pc = r.u32("next pc")
    r.u32("lo")
    r.u32("hi")
    heap = r.u32("heap")
    exit_code = r.u8("exit code")
    exited = r.u8("exited flag")
    if exited not in (0, 1):
        raise SnapshotDecodeError(f"Invalid exited flag: {exited}")
    step = r.u64("step")
    registers = tuple(r.u32(f"register {i}") for i in range(NUM_REGISTERS))
    hint_len = r.u32("last hint length")
    last_hint = r.take(hint_len, "last hint")
    return SingleThreadedState(
        preimage_key=preimage_key,
        preimage_offset=preimage_offset,
        pc=pc,
        next_pc=next_pc,
        heap=heap,
        exit_code=exit_code,
        exited=bool(exited),
        step=step,
        registers=registers,
        last_hint=last_hint,
        page_count=page_count,
    )


def decode_versioned_state(data: bytes) -> VersionedState:
    """Decode a snapshot produced by the emulator.

    Raises:
        SnapshotDecodeError: On truncation, bad gzip data or an unsupported version
    """
    if data[:2] == GZIP_MAGIC:
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as e:
            raise SnapshotDecodeError(f"Corrupt gzip snapshot: {e}") from None
    r = _Reader(data)
    version = r.u8("version")
    if version != VERSION_SINGLE_THREADED:
        raise SnapshotDecodeError(f"Unsupported state version: {version}")
    return VersionedState(version=version, state=_decode_single_threaded(r))
