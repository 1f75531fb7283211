"""Rollup config registry: native configs keyed by L2 chain id.

Ships the superchain mainnets this tool is used against; further entries can
be loaded from a JSON file mapping chain id -> native config.
"""

import json
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

from pydantic import ValidationError

from opfp.errors import ConfigResolutionError, UnknownChain
from opfp.kernel.rollup_config import NativeRollupConfig


_MAINNET_FORKS = {
    "regolith_time": 0,
    "canyon_time": 1704992401,
    "delta_time": 1708560000,
    "ecotone_time": 1710374401,
    "fjord_time": 1720627201,
    "granite_time": 1726070401,
}

_BUILTIN: Dict[int, dict] = {
    10: {
        "genesis": {
            "l1": {
                "hash": "0x438335a20d98863a4c0c97999eb2481921ccd28553eac6f913af7c12aec04108",
                "number": 17422590,
            },
            "l2": {
                "hash": "0xdbf6a80fef073de06add9b0d14026d6e5a86c85f6d102c36d3d8e9cf89c2afd3",
                "number": 105235063,
            },
            "l2_time": 1686068903,
            "system_config": {
                "batcher_address": "0x6887246668a3b87f54deb3b94ba47a6f63f32985",
                "overhead": "0xbc",
                "scalar": "0xa6fe0",
                "gas_limit": 30000000,
            },
        },
        "block_time": 2,
        "max_sequencer_drift": 600,
        "seq_window_size": 3600,
        "channel_timeout": 300,
        "l1_chain_id": 1,
        "l2_chain_id": 10,
        "batch_inbox_address": "0xff00000000000000000000000000000000000010",
        "deposit_contract_address": "0xbeb5fc579115071764c7423a4f12edde41f106ed",
        "l1_system_config_address": "0x229047fed2591dbec1ef1118d64f7af3db9eb290",
        "protocol_versions_address": "0x8062abc286f5e7d9428a0ccb9abd71e50d93b935",
        **_MAINNET_FORKS,
    },
    8453: {
        "genesis": {
            "l1": {
                "hash": "0x5c13d307623a926cd31415036c8b7fa14572f9dac64528e857a470511fc30771",
                "number": 17481768,
            },
            "l2": {
                "hash": "0xf712aa9241cc24369b143cf6dce85f0902a9731e70d66818a3a5845b296c73dd",
                "number": 0,
            },
            "l2_time": 1686789347,
            "system_config": {
                "batcher_address": "0x5050f69a9786f081509234f1a7f4684b5e5b76c9",
                "overhead": "0xbc",
                "scalar": "0xa6fe0",
                "gas_limit": 30000000,
            },
        },
        "block_time": 2,
        "max_sequencer_drift": 600,
        "seq_window_size": 3600,
        "channel_timeout": 300,
        "l1_chain_id": 1,
        "l2_chain_id": 8453,
        "batch_inbox_address": "0xff00000000000000000000000000000000008453",
        "deposit_contract_address": "0x49048044d57e1c92a77f79988d21fa8faf74e97e",
        "l1_system_config_address": "0x73a79fab69143498ed3712e519a88a918e1f4072",
        "protocol_versions_address": "0x8062abc286f5e7d9428a0ccb9abd71e50d93b935",
        **_MAINNET_FORKS,
    },
}


class RollupConfigRegistry:
    """Lookup of native rollup configs by L2 chain id."""

    def __init__(self, entries: Optional[Mapping[int, NativeRollupConfig]] = None):
        self._entries: Dict[int, NativeRollupConfig] = dict(entries or {})

    @classmethod
    def builtin(cls) -> "RollupConfigRegistry":
        return cls({cid: NativeRollupConfig.model_validate(raw) for cid, raw in _BUILTIN.items()})

    def extend_from_path(self, path: Union[str, Path]) -> None:
        """Add entries from a JSON object of {"<chain id>": <native config>}.

        Raises:
            ConfigResolutionError: If the file is unreadable or malformed
        """
        registry_path = Path(path)
        try:
            data = json.loads(registry_path.read_text(encoding="utf-8"))
            for key, raw in data.items():
                self._entries[int(key)] = NativeRollupConfig.model_validate(raw)
        except OSError as e:
            raise ConfigResolutionError(f"Failed to read registry {registry_path}: {e}") from e
        except (json.JSONDecodeError, AttributeError, ValueError, ValidationError) as e:
            raise ConfigResolutionError(f"Malformed registry {registry_path}: {e}") from e

    def chain_ids(self) -> list[int]:
        return sorted(self._entries)

    def get(self, chain_id: int) -> NativeRollupConfig:
        """Native config for chain_id.

        Raises:
            UnknownChain: If the registry has no entry for chain_id
        """
        try:
            return self._entries[chain_id]
        except KeyError:
            raise UnknownChain(chain_id) from None
