"""Rollup configuration in two shapes: the registry's native form and the portable form.

The portable form is what fixtures carry and what the fault-proof program reads
as ``rollup_config.json`` (op-node's rollup.json layout). The native form is what
the rollup-config registry stores; it carries extra fields the portable form
drops, which are refilled with presets on the way back.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from opfp.errors import ConfigResolutionError

from .hex_utils import B256, Address, HexBytes, Quantity, ZERO_ADDRESS, int_to_word, word_to_int


GRANITE_CHANNEL_TIMEOUT = 50


class BlockID(BaseModel):
    """Block reference: hash + number."""
    hash: B256
    number: Quantity

    model_config = ConfigDict(frozen=True)


class SystemConfig(BaseModel):
    """System config snapshot needed to bootstrap derivation."""
    batcher_addr: Address = Field(alias="batcherAddr")
    overhead: B256
    scalar: B256
    gas_limit: Quantity = Field(alias="gasLimit")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Genesis(BaseModel):
    """Rollup genesis anchors: L1/L2 block refs, L2 genesis time, system config."""
    l1: BlockID
    l2: BlockID
    l2_time: Quantity
    system_config: SystemConfig

    model_config = ConfigDict(frozen=True)


class RollupConfig(BaseModel):
    """Portable rollup config (fixture / rollup.json shape)."""
    genesis: Genesis
    block_time: Quantity
    max_sequencer_drift: Quantity
    seq_window_size: Quantity
    channel_timeout: Quantity
    l1_chain_id: Optional[Quantity] = None
    l2_chain_id: Optional[Quantity] = None

    # Fork activation times; None means not scheduled
    regolith_time: Optional[Quantity] = None
    canyon_time: Optional[Quantity] = None
    delta_time: Optional[Quantity] = None
    ecotone_time: Optional[Quantity] = None
    fjord_time: Optional[Quantity] = None
    granite_time: Optional[Quantity] = None
    interop_time: Optional[Quantity] = None

    batch_inbox_address: Address
    deposit_contract_address: Address
    l1_system_config_address: Address
    protocol_versions_address: Optional[Address] = None
    da_challenge_address: Optional[Address] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BaseFeeParams(BaseModel):
    """EIP-1559 base fee parameters."""
    max_change_denominator: int
    elasticity_multiplier: int

    model_config = ConfigDict(frozen=True)

    @classmethod
    def optimism(cls) -> "BaseFeeParams":
        return cls(max_change_denominator=50, elasticity_multiplier=6)

    @classmethod
    def optimism_canyon(cls) -> "BaseFeeParams":
        return cls(max_change_denominator=250, elasticity_multiplier=6)


class NativeSystemConfig(BaseModel):
    batcher_address: Address
    overhead: Quantity
    scalar: Quantity
    gas_limit: Quantity
    base_fee_scalar: Optional[Quantity] = None
    blob_base_fee_scalar: Optional[Quantity] = None

    model_config = ConfigDict(frozen=True)


class NativeGenesis(BaseModel):
    l1: BlockID
    l2: BlockID
    l2_time: Quantity
    extra_data: Optional[HexBytes] = None
    system_config: Optional[NativeSystemConfig] = None

    model_config = ConfigDict(frozen=True)


class NativeRollupConfig(BaseModel):
    """Registry-native rollup config."""
    genesis: NativeGenesis
    block_time: Quantity
    max_sequencer_drift: Quantity
    seq_window_size: Quantity
    channel_timeout: Quantity
    granite_channel_timeout: Quantity = GRANITE_CHANNEL_TIMEOUT
    l1_chain_id: Quantity
    l2_chain_id: Quantity
    base_fee_params: BaseFeeParams = Field(default_factory=BaseFeeParams.optimism)
    canyon_base_fee_params: Optional[BaseFeeParams] = None
    regolith_time: Optional[Quantity] = None
    canyon_time: Optional[Quantity] = None
    delta_time: Optional[Quantity] = None
    ecotone_time: Optional[Quantity] = None
    fjord_time: Optional[Quantity] = None
    granite_time: Optional[Quantity] = None
    holocene_time: Optional[Quantity] = None
    batch_inbox_address: Address
    deposit_contract_address: Address
    l1_system_config_address: Address
    protocol_versions_address: Address = ZERO_ADDRESS
    superchain_config_address: Optional[Address] = None
    blobs_enabled_l1_timestamp: Optional[Quantity] = None
    da_challenge_address: Optional[Address] = None

    model_config = ConfigDict(frozen=True, extra="ignore")



def to_portable(native: NativeRollupConfig) -> RollupConfig:
    """Project a native config onto the portable shape.

    Native-only fields are dropped; chain ids and the protocol versions address
    are always filled. The native genesis must carry a system config.

    Raises:
        ConfigResolutionError: If the native genesis has no system config
    """
    syscfg = native.genesis.system_config
    if syscfg is None:
        raise ConfigResolutionError(
            f"Rollup config for L2 chain {native.l2_chain_id} has no genesis system config"
        )
    genesis = Genesis(
        l1=native.genesis.l1,
        l2=native.genesis.l2,
        l2_time=native.genesis.l2_time,
        system_config=SystemConfig(
            batcher_addr=syscfg.batcher_address,
            overhead=int_to_word(syscfg.overhead),
            scalar=int_to_word(syscfg.scalar),
            gas_limit=syscfg.gas_limit,
        ),
    )
    return RollupConfig(
        genesis=genesis,
        block_time=native.block_time,
        max_sequencer_drift=native.max_sequencer_drift,
        seq_window_size=native.seq_window_size,
        channel_timeout=native.channel_timeout,
        l1_chain_id=native.l1_chain_id,
        l2_chain_id=native.l2_chain_id,
        regolith_time=native.regolith_time,
        canyon_time=native.canyon_time,
        delta_time=native.delta_time,
        ecotone_time=native.ecotone_time,
        fjord_time=native.fjord_time,
        granite_time=native.granite_time,
        interop_time=None,
        batch_inbox_address=native.batch_inbox_address,
        deposit_contract_address=native.deposit_contract_address,
        l1_system_config_address=native.l1_system_config_address,
        protocol_versions_address=native.protocol_versions_address,
        da_challenge_address=native.da_challenge_address,
    )


def to_native(portable: RollupConfig) -> NativeRollupConfig:
    """Expand a portable config into the native shape.

    Fields the portable form does not carry take presets: optimism base fee
    params (50/6), canyon base fee params (250/6), granite channel timeout 50,
    chain ids 0 and the zero protocol versions address when absent.
    """
    syscfg = portable.genesis.system_config
    return NativeRollupConfig(
        genesis=NativeGenesis(
            l1=portable.genesis.l1,
            l2=portable.genesis.l2,
            l2_time=portable.genesis.l2_time,
            extra_data=None,
            system_config=NativeSystemConfig(
                batcher_address=syscfg.batcher_addr,
                overhead=word_to_int(syscfg.overhead),
                scalar=word_to_int(syscfg.scalar),
                gas_limit=syscfg.gas_limit,
            ),
        ),
        block_time=portable.block_time,
        max_sequencer_drift=portable.max_sequencer_drift,
        seq_window_size=portable.seq_window_size,
        channel_timeout=portable.channel_timeout,
        granite_channel_timeout=GRANITE_CHANNEL_TIMEOUT,
        l1_chain_id=portable.l1_chain_id or 0,
        l2_chain_id=portable.l2_chain_id or 0,
        base_fee_params=BaseFeeParams.optimism(),
        canyon_base_fee_params=BaseFeeParams.optimism_canyon(),
        regolith_time=portable.regolith_time,
        canyon_time=portable.canyon_time,
        delta_time=portable.delta_time,
        ecotone_time=portable.ecotone_time,
        fjord_time=portable.fjord_time,
        granite_time=portable.granite_time,
        holocene_time=None,
        batch_inbox_address=portable.batch_inbox_address,
        deposit_contract_address=portable.deposit_contract_address,
        l1_system_config_address=portable.l1_system_config_address,
        protocol_versions_address=portable.protocol_versions_address or ZERO_ADDRESS,
        da_challenge_address=portable.da_challenge_address,
    )
