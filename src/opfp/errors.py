"""Error taxonomy for opfp.

Every component raises the first error it hits; nothing here is retried
except the bounded safe-head search, which raises ``SafeHeadNotFound`` once
its probe budget is spent.
"""


class OpfpError(Exception):
    """Base class for all opfp failures."""
    pass


class ConfigResolutionError(OpfpError):
    """Chain identity or rollup config could not be resolved."""
    pass


class MissingChainIdentity(ConfigResolutionError):
    """Neither a genesis source nor a chain name was supplied."""
    pass


class UnknownChain(ConfigResolutionError):
    """No registry entry matches the L2 chain id."""

    def __init__(self, chain_id: int):
        super().__init__(f"No rollup config found for L2 chain ID: {chain_id}")
        self.chain_id = chain_id


class NetworkError(OpfpError):
    """An RPC call failed or returned a malformed response."""

    def __init__(self, method: str, message: str):
        super().__init__(f"{method}: {message}")
        self.method = method


class SafeHeadNotFound(OpfpError):
    """The bounded safe-head search ran out of probes."""

    def __init__(self, target: int, probes: list[int]):
        last = probes[-1] if probes else None
        super().__init__(
            f"No safe head covering L2 block {target} after {len(probes)} probes "
            f"(last L1 block probed: {last})"
        )
        self.target = target
        self.probes = probes


class StagingIOError(OpfpError):
    """Filesystem failure while staging inputs or reading program outputs."""

    def __init__(self, path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class ProgramExecutionFailed(OpfpError):
    """External binary could not be launched or exited non-zero."""

    def __init__(self, binary, returncode=None, reason: str = ""):
        if returncode is None:
            msg = f"Failed to execute {binary}: {reason}"
        else:
            msg = f"{binary} exited with status {returncode}"
        super().__init__(msg)
        self.binary = binary
        self.returncode = returncode


class WitnessDecodeError(OpfpError):
    """Malformed digest or hex content in a witness store."""
    pass


class SnapshotDecodeError(OpfpError):
    """Emulator output snapshot is malformed, truncated or unsupported."""
    pass


class FixtureLoadError(OpfpError):
    """A fixture file could not be read or does not match the fixture schema."""
    pass
