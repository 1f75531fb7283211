"""Program and emulator orchestration.

``ProgramCommand`` stages a fixture into a working directory and runs the
fault-proof program directly. ``EmulatorCommand`` holds a ``ProgramCommand``
and runs the same invocation inside the instruction-level emulator, then reads
the emulator's snapshot and debug outputs for richer statistics. Both expose
``prepare()`` then ``run()``; a run either fully succeeds with ``ProgramStats``
or raises.
"""

import json
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

import structlog

from opfp._internal.io.fixture_io import write_json
from opfp._internal.io.witness_store import harvest_witness_store, stage_witness_store
from opfp.errors import ProgramExecutionFailed, SnapshotDecodeError, StagingIOError
from opfp.kernel.fixture import (
    FaultProofInputs,
    FaultProofStatus,
    NamedChain,
    ProgramStats,
    UnnamedChain,
)
from opfp.kernel.hex_utils import HexDecodeError, encode_hex, parse_quantity
from opfp.kernel.snapshot import VersionedState, decode_versioned_state

logger = structlog.get_logger(__name__)

GENESIS_FILE = "genesis.json"
ROLLUP_CONFIG_FILE = "rollup_config.json"
EMULATOR_OUTPUT_FILE = "cannon-output.bin"
EMULATOR_DEBUG_FILE = "cannon-debug.json"
EMULATOR_INFO_AT = "%10000000"


class RunState(str, Enum):
    CREATED = "created"
    PREPARED = "prepared"
    RAN = "ran"
    COLLECTED = "collected"
    FAILED = "failed"


@dataclass(frozen=True)
class OnlineSources:
    """Endpoints the program fetches preimages from when building a fixture."""
    l1_rpc_url: str
    l2_rpc_url: str
    beacon_url: str


class FaultProofRunner(Protocol):
    state: RunState

    def prepare(self) -> None: ...

    def run(self) -> ProgramStats: ...


def create_work_dir(kind: str, base: Optional[Path] = None) -> Path:
    """Create a fresh, uniquely named working directory under <base>/<kind>/.

    The name starts with the current time in milliseconds. Removing it is the
    caller's job.
    """
    root = (base or Path(tempfile.gettempdir())) / kind
    try:
        root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=f"{int(time.time() * 1000)}-", dir=root))
    except OSError as e:
        raise StagingIOError(root, f"Failed to create working directory: {e}") from e


def _execute(binary: Path, args: List[str]) -> int:
    """Run binary to completion and return wall-clock milliseconds.

    Raises:
        ProgramExecutionFailed: Launch failure or non-zero exit
    """
    start = time.perf_counter()
    try:
        result = subprocess.run([str(binary), *args], check=False)
    except OSError as e:
        raise ProgramExecutionFailed(binary, reason=str(e)) from e
    runtime = int((time.perf_counter() - start) * 1000)
    if result.returncode != 0:
        raise ProgramExecutionFailed(binary, returncode=result.returncode)
    return runtime


class ProgramCommand:
    """Runs the fault-proof program against a fixture's inputs.

    Offline (replay): chain files and the staged witness store share work_dir,
    which is also the program's --datadir.
    Online (fixture building): chain files go to work_dir/input and the
    program writes the preimages it fetches to work_dir/output.
    """

    def __init__(
        self,
        program: Union[str, Path],
        inputs: FaultProofInputs,
        work_dir: Union[str, Path],
        witness_data: Optional[Dict[bytes, bytes]] = None,
        online: Optional[OnlineSources] = None,
    ):
        self.program = Path(program)
        self.inputs = inputs
        self.work_dir = Path(work_dir)
        self.witness_data = witness_data or {}
        self.online = online
        if online is None:
            self.input_dir = self.work_dir
            self.data_dir = self.work_dir
        else:
            self.input_dir = self.work_dir / "input"
            self.data_dir = self.work_dir / "output"
        self.state = RunState.CREATED
        self._log = logger.bind(program=str(self.program), work_dir=str(self.work_dir))

    @property
    def genesis_file(self) -> Path:
        return self.input_dir / GENESIS_FILE

    @property
    def rollup_config_file(self) -> Path:
        return self.input_dir / ROLLUP_CONFIG_FILE

    def prepare(self) -> None:
        """Write chain files for unnamed chains and stage the witness store."""
        try:
            self.input_dir.mkdir(parents=True, exist_ok=True)
            if self.online is not None and self.data_dir.exists():
                shutil.rmtree(self.data_dir)
        except OSError as e:
            self.state = RunState.FAILED
            raise StagingIOError(self.input_dir, f"Failed to prepare directories: {e}") from e

        try:
            chain = self.inputs.chain_definition
            if isinstance(chain, UnnamedChain):
                write_json(self.genesis_file, chain.genesis)
                write_json(self.rollup_config_file, chain.rollup_config)
            if self.online is None:
                stage_witness_store(self.witness_data, self.data_dir)
        except StagingIOError:
            self.state = RunState.FAILED
            raise
        self.state = RunState.PREPARED
        self._log.info("program_prepared", witnesses=len(self.witness_data))

    def args(self) -> List[str]:
        inputs = self.inputs
        args = [
            "--l1.head", encode_hex(inputs.l1_head),
            "--l2.head", encode_hex(inputs.l2_head),
            "--l2.outputroot", encode_hex(inputs.l2_output_root),
            "--l2.blocknumber", str(inputs.l2_block_number),
            "--l2.claim", encode_hex(inputs.l2_claim),
            "--log.format", "terminal",
            "--datadir", str(self.data_dir),
            "--data.format", "directory",
        ]
        chain = inputs.chain_definition
        if isinstance(chain, NamedChain):
            args += ["--network", chain.name]
        elif isinstance(chain, UnnamedChain):
            args += [
                "--l2.genesis", str(self.genesis_file),
                "--rollup.config", str(self.rollup_config_file),
            ]
        else:
            raise TypeError(f"Unsupported chain definition: {type(chain).__name__}")
        if self.online is not None:
            args += [
                "--l1", self.online.l1_rpc_url,
                "--l2", self.online.l2_rpc_url,
                "--l1.beacon", self.online.beacon_url,
                "--l2.custom",
            ]
        return args

    def run(self) -> ProgramStats:
        """Execute the program directly and time it."""
        self._log.debug("program_args", args=self.args())
        try:
            runtime = _execute(self.program, self.args())
        except ProgramExecutionFailed:
            self.state = RunState.FAILED
            self._log.error("program_failed")
            raise
        self.state = RunState.RAN
        stats = ProgramStats(runtime=runtime)
        self.state = RunState.COLLECTED
        return stats

    def harvest(self) -> Dict[bytes, bytes]:
        """Collect the preimages the program wrote to its data directory."""
        return harvest_witness_store(self.data_dir)


class EmulatorCommand:
    """Runs a ProgramCommand inside the instruction-level emulator."""

    def __init__(
        self,
        emulator: Union[str, Path],
        state: Union[str, Path],
        meta: Union[str, Path],
        program: ProgramCommand,
    ):
        self.emulator = Path(emulator)
        self.state_path = Path(state)
        self.meta_path = Path(meta)
        self.program = program
        self.output = program.work_dir / EMULATOR_OUTPUT_FILE
        self.debug = program.work_dir / EMULATOR_DEBUG_FILE
        self.state = RunState.CREATED
        self.final_state: Optional[VersionedState] = None
        self._log = logger.bind(emulator=str(self.emulator), work_dir=str(program.work_dir))

    def prepare(self) -> None:
        try:
            self.program.prepare()
        except StagingIOError:
            self.state = RunState.FAILED
            raise
        self.state = RunState.PREPARED

    def args(self) -> List[str]:
        args = [
            "run",
            "--info-at", EMULATOR_INFO_AT,
            "--input", str(self.state_path),
            "--meta", str(self.meta_path),
            "--output", str(self.output),
            "--debug-info", str(self.debug),
            "--",
            str(self.program.program),
        ]
        args.extend(self.program.args())
        args.append("--server")
        return args

    def run(self) -> ProgramStats:
        """Execute under the emulator, then collect step and debug counters."""
        self._log.debug("emulator_args", args=self.args())
        try:
            runtime = _execute(self.emulator, self.args())
        except ProgramExecutionFailed:
            self.state = RunState.FAILED
            self._log.error("emulator_failed")
            raise
        self.state = RunState.RAN
        try:
            stats = self.collect(runtime)
        except (StagingIOError, SnapshotDecodeError):
            self.state = RunState.FAILED
            raise
        self.state = RunState.COLLECTED
        return stats

    def collect(self, runtime: int) -> ProgramStats:
        try:
            data = self.output.read_bytes()
        except OSError as e:
            raise StagingIOError(self.output, f"Failed to read output file: {e}") from e
        self.final_state = decode_versioned_state(data)

        try:
            debug = json.loads(self.debug.read_text(encoding="utf-8"))
        except OSError as e:
            raise StagingIOError(self.debug, f"Failed to read debug output file: {e}") from e
        except json.JSONDecodeError as e:
            raise StagingIOError(self.debug, f"Malformed debug output: {e}") from e
        try:
            return ProgramStats(
                runtime=runtime,
                instructions=self.final_state.step,
                pages=parse_quantity(debug["pages"]),
                memory_used=parse_quantity(debug["memory_used"]),
                num_preimage_requests=parse_quantity(debug["num_preimage_requests"]),
                total_preimage_size=parse_quantity(debug["total_preimage_size"]),
            )
        except (KeyError, TypeError, HexDecodeError) as e:
            raise StagingIOError(self.debug, f"Malformed debug output: {e}") from e

    def observed_status(self) -> Optional[FaultProofStatus]:
        """Status implied by the final snapshot, or None if the program had not exited."""
        if self.final_state is None:
            return None
        state = self.final_state.state
        if not state.exited:
            return FaultProofStatus.UNFINISHED
        return FaultProofStatus.from_wire(state.exit_code)
