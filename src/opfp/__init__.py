"""opfp: fault proof program fixture tooling."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("opfp")
except PackageNotFoundError:
    __version__ = "dev"

from opfp.api import build_fixture, build_inputs, replay_fixture
from opfp.config import BuildOptions, ReplayOptions
from opfp.errors import OpfpError
from opfp.kernel.fixture import (
    FaultProofFixture,
    FaultProofInputs,
    FaultProofStatus,
    NamedChain,
    ProgramStats,
    UnnamedChain,
)

__all__ = [
    "__version__",
    "build_fixture",
    "build_inputs",
    "replay_fixture",
    "BuildOptions",
    "ReplayOptions",
    "OpfpError",
    "FaultProofFixture",
    "FaultProofInputs",
    "FaultProofStatus",
    "NamedChain",
    "UnnamedChain",
    "ProgramStats",
]
