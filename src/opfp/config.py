"""Option models for the two commands.

The CLI gathers flags (and endpoint environment variables) into these frozen
models; the library entry points in ``opfp.api`` take them as-is.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from opfp.rpc import DEFAULT_TIMEOUT_S

ENV_L1_RPC_URL = "OPFP_L1_RPC_URL"
ENV_L2_RPC_URL = "OPFP_L2_RPC_URL"
ENV_BEACON_URL = "OPFP_BEACON_URL"
ENV_ROLLUP_URL = "OPFP_ROLLUP_URL"

BUILD_WORK_KIND = "from-op-program"
REPLAY_WORK_KIND = "run-op-program"


class BuildOptions(BaseModel):
    """Options for building a fixture from a live chain."""
    op_program: Path
    l2_block: int = Field(ge=1, lt=2**64)
    l1_block: Optional[int] = Field(default=None, ge=0)
    l1_rpc_url: str
    l2_rpc_url: str
    beacon_url: str
    rollup_url: str
    chain_name: Optional[str] = None
    rollup_path: Optional[Path] = None
    genesis_path: Optional[Path] = None
    registry_path: Optional[Path] = None  # extra rollup configs by chain id
    output: Path
    rpc_timeout_s: float = Field(default=DEFAULT_TIMEOUT_S, gt=0)
    work_root: Optional[Path] = None  # defaults to the system temp dir

    model_config = ConfigDict(frozen=True, extra="forbid")


class ReplayOptions(BaseModel):
    """Options for replaying a fixture, optionally under the emulator."""
    fixture: Path
    op_program: Path
    cannon: Optional[Path] = None
    cannon_state: Optional[Path] = None
    cannon_meta: Optional[Path] = None
    output: Optional[Path] = None
    work_root: Optional[Path] = None

    model_config = ConfigDict(frozen=True, extra="forbid")
