"""Public API for opfp.

High-level functions that run a whole command end to end. The CLI is a thin
layer over these; tests inject fake providers through the keyword arguments.
"""

import shutil
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import structlog

from opfp._internal.io.fixture_io import load_fixture, write_fixture, write_json
from opfp.chain import resolve_chain_definition, resolve_rollup_config
from opfp.config import BUILD_WORK_KIND, REPLAY_WORK_KIND, BuildOptions, ReplayOptions
from opfp.errors import ConfigResolutionError, StagingIOError
from opfp.kernel.fixture import (
    FaultProofFixture,
    FaultProofInputs,
    FaultProofStatus,
    ProgramStats,
)
from opfp.kernel.safe_head import SafeHeadResolver
from opfp.orchestrator import (
    EmulatorCommand,
    FaultProofRunner,
    OnlineSources,
    ProgramCommand,
    create_work_dir,
)
from opfp.registry import RollupConfigRegistry
from opfp.rpc import ChainProvider, RollupProvider

logger = structlog.get_logger(__name__)


def _remove_work_dir(work_dir: Path) -> None:
    try:
        shutil.rmtree(work_dir)
    except OSError as e:
        raise StagingIOError(work_dir, f"Failed to remove working directory: {e}") from e


def build_inputs(
    l2_block: int,
    rollup: RollupProvider,
    l1: ChainProvider,
    chain_definition,
    l1_block: Optional[int] = None,
    safe_head_resolver: Optional[SafeHeadResolver] = None,
) -> FaultProofInputs:
    """Assemble the claim for l2_block from its output and its parent's output.

    The L1 head is the hash of l1_block when given, otherwise the first L1
    block whose safe head covers l2_block.
    """
    log = logger.bind(l2_block=l2_block)
    claim = rollup.output_at_block(l2_block)
    parent = rollup.output_at_block(l2_block - 1)

    if l1_block is not None:
        l1_head = l1.block_hash_by_number(l1_block)
        log.info("l1_head_from_block", l1_block=l1_block)
    else:
        resolver = safe_head_resolver or SafeHeadResolver(
            rollup,
            on_probe=lambda l1_number, safe: log.debug(
                "safe_head_probe", l1_block=l1_number, safe_head=safe
            ),
        )
        response = resolver.find_next_safe_head(l2_block)
        l1_head = response.l1_block.hash
        log.info("l1_head_from_safe_head", l1_block=response.l1_block.number)

    return FaultProofInputs(
        l1_head=l1_head,
        l2_head=parent.block_ref.hash,
        l2_output_root=parent.output_root,
        l2_claim=claim.output_root,
        l2_block_number=l2_block,
        chain_definition=chain_definition,
    )


def build_fixture(
    options: BuildOptions,
    l1: Optional[ChainProvider] = None,
    l2: Optional[ChainProvider] = None,
    rollup: Optional[RollupProvider] = None,
    registry: Optional[RollupConfigRegistry] = None,
) -> FaultProofFixture:
    """Run the program online against a live chain and record a fixture.

    The fixture is written to options.output and returned. Providers not
    passed in are created from the option URLs and closed afterwards.

    Raises:
        ConfigResolutionError: Chain identity or rollup config unresolvable
        NetworkError: Any RPC failure
        SafeHeadNotFound: No safe head covering the block within the probe bound
        ProgramExecutionFailed: The program failed to launch or exited non-zero
        StagingIOError: Filesystem failure around the working directory
        WitnessDecodeError: The program left a malformed preimage behind
    """
    log = logger.bind(target=BUILD_WORK_KIND)
    if registry is None:
        registry = RollupConfigRegistry.builtin()
        if options.registry_path is not None:
            registry.extend_from_path(options.registry_path)

    with ExitStack() as clients:
        if l1 is None:
            l1 = ChainProvider.new_http(options.l1_rpc_url, timeout_s=options.rpc_timeout_s)
            clients.enter_context(l1.client)
        if l2 is None:
            l2 = ChainProvider.new_http(options.l2_rpc_url, timeout_s=options.rpc_timeout_s)
            clients.enter_context(l2.client)
        if rollup is None:
            rollup = RollupProvider.new_http(options.rollup_url, timeout_s=options.rpc_timeout_s)
            clients.enter_context(rollup.client)

        rollup_config = None
        if options.genesis_path is not None:
            rollup_config = resolve_rollup_config(options.rollup_path, l2, registry)
        chain = resolve_chain_definition(options.genesis_path, options.chain_name, rollup_config)
        inputs = build_inputs(options.l2_block, rollup, l1, chain, l1_block=options.l1_block)

    work_dir = create_work_dir(BUILD_WORK_KIND, options.work_root)
    log.info("work_dir_created", work_dir=str(work_dir))
    command = ProgramCommand(
        options.op_program,
        inputs,
        work_dir,
        online=OnlineSources(
            l1_rpc_url=options.l1_rpc_url,
            l2_rpc_url=options.l2_rpc_url,
            beacon_url=options.beacon_url,
        ),
    )
    command.prepare()
    stats = command.run()
    witness_data = command.harvest()
    log.info("program_finished", runtime_ms=stats.runtime, witnesses=len(witness_data))

    fixture = FaultProofFixture(
        inputs=inputs,
        expected_status=FaultProofStatus.VALID,
        witness_data=witness_data,
    )
    write_fixture(options.output, fixture)
    log.info("fixture_written", path=str(options.output))
    _remove_work_dir(work_dir)
    return fixture


def replay_fixture(options: ReplayOptions) -> ProgramStats:
    """Replay a fixture offline, directly or under the emulator.

    Stats are logged, written to options.output when set, and returned. The
    working directory is removed only after a successful run.

    Raises:
        ConfigResolutionError: Emulator requested without state or metadata
        FixtureLoadError: The fixture file is unreadable or invalid
        ProgramExecutionFailed: The program or emulator failed
        StagingIOError: Filesystem failure staging inputs or reading outputs
        SnapshotDecodeError: The emulator's output snapshot is malformed
    """
    log = logger.bind(target=REPLAY_WORK_KIND)
    if options.cannon is not None and (options.cannon_state is None or options.cannon_meta is None):
        raise ConfigResolutionError("Running under the emulator requires both a state and a meta path")

    fixture = load_fixture(options.fixture)
    log.info("fixture_loaded", path=str(options.fixture), witnesses=len(fixture.witness_data))

    work_dir = create_work_dir(REPLAY_WORK_KIND, options.work_root)
    program = ProgramCommand(
        options.op_program,
        fixture.inputs,
        work_dir,
        witness_data=fixture.witness_data,
    )
    runner: FaultProofRunner
    emulator: Optional[EmulatorCommand] = None
    if options.cannon is not None:
        emulator = EmulatorCommand(options.cannon, options.cannon_state, options.cannon_meta, program)
        runner = emulator
    else:
        runner = program

    runner.prepare()
    stats = runner.run()

    if emulator is not None:
        observed = emulator.observed_status()
        if observed is not None and observed != fixture.expected_status:
            log.warning(
                "unexpected_status",
                expected=fixture.expected_status.name,
                observed=observed.name,
            )

    log.info("program_stats", **stats.model_dump(exclude_none=True))
    if options.output is not None:
        write_json(options.output, stats)
    _remove_work_dir(work_dir)
    return stats
