"""Chain definition and rollup config resolution."""

from pathlib import Path
from typing import Optional, Protocol

import structlog

from opfp._internal.io.fixture_io import load_genesis, load_rollup_config
from opfp.errors import MissingChainIdentity
from opfp.kernel.fixture import ChainDefinition, NamedChain, UnnamedChain
from opfp.kernel.rollup_config import RollupConfig, to_portable
from opfp.registry import RollupConfigRegistry

logger = structlog.get_logger(__name__)


class ChainIdSource(Protocol):
    def chain_id(self) -> int: ...


def resolve_rollup_config(
    rollup_path: Optional[Path],
    l2: Optional[ChainIdSource],
    registry: Optional[RollupConfigRegistry] = None,
) -> RollupConfig:
    """Resolve the portable rollup config.

    A local file wins and never touches the network. Otherwise the L2 chain id
    is looked up in the registry and converted to the portable form.

    Raises:
        ConfigResolutionError: Malformed local file, or no L2 source to ask
        UnknownChain: No registry entry for the L2 chain id
        NetworkError: The chain id query failed
    """
    if rollup_path is not None:
        logger.info("rollup_config_from_file", path=str(rollup_path))
        return load_rollup_config(rollup_path)
    if l2 is None:
        raise MissingChainIdentity("No rollup config path and no L2 endpoint to query")
    chain_id = l2.chain_id()
    if registry is None:
        registry = RollupConfigRegistry.builtin()
    native = registry.get(chain_id)
    logger.info("rollup_config_from_registry", chain_id=chain_id)
    return to_portable(native)


def resolve_chain_definition(
    genesis_path: Optional[Path],
    chain_name: Optional[str],
    rollup_config: Optional[RollupConfig] = None,
) -> ChainDefinition:
    """Pick the chain identity for a fixture.

    An explicit genesis yields an unnamed definition paired with rollup_config;
    otherwise the chain name is required.

    Raises:
        MissingChainIdentity: Neither a genesis path nor a chain name is given
    """
    if genesis_path is not None:
        if rollup_config is None:
            raise MissingChainIdentity("A genesis file requires a resolved rollup config")
        genesis = load_genesis(genesis_path)
        return UnnamedChain(rollup_config=rollup_config, genesis=genesis)
    if not chain_name:
        raise MissingChainIdentity("Missing chain name: pass a chain name or a genesis file")
    return NamedChain(name=chain_name)
