"""opfp CLI: build fault-proof fixtures and replay them."""

import argparse
import os
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import List, Optional

import structlog

from opfp.api import build_fixture, replay_fixture
from opfp.config import (
    BUILD_WORK_KIND,
    ENV_BEACON_URL,
    ENV_L1_RPC_URL,
    ENV_L2_RPC_URL,
    ENV_ROLLUP_URL,
    REPLAY_WORK_KIND,
    BuildOptions,
    ReplayOptions,
)
from opfp.errors import OpfpError
from opfp.telemetry import init_telemetry

logger = structlog.get_logger(__name__)

_URL_FLAGS = (
    ("l1_rpc_url", "--l1-rpc-url", ENV_L1_RPC_URL),
    ("l2_rpc_url", "--l2-rpc-url", ENV_L2_RPC_URL),
    ("beacon_url", "--beacon-url", ENV_BEACON_URL),
    ("rollup_url", "--rollup-url", ENV_ROLLUP_URL),
)


def build_parser() -> argparse.ArgumentParser:
    try:
        opfp_version = get_version("opfp")
    except PackageNotFoundError:
        opfp_version = "dev"

    parser = argparse.ArgumentParser(
        prog="opfp",
        description="opfp: build and replay fault proof program fixtures"
    )
    parser.add_argument("--version", action="version", version=f"opfp {opfp_version}")
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "-v", "--verbosity",
        action="count",
        default=0,
        help="Increase log verbosity (-v warn, -vv info, -vvv debug, -vvvv with call sites)"
    )
    parent_parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Render logs as JSON lines."
    )
    parent_parser.add_argument(
        "-o", "--op-program",
        type=Path,
        required=True,
        help="Path to the fault proof program binary"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # from-op-program command
    build_parser_ = subparsers.add_parser(
        BUILD_WORK_KIND,
        help="Run the program against a live chain and record a fixture",
        parents=[parent_parser]
    )
    build_parser_.add_argument(
        "--l2-block",
        type=int,
        required=True,
        help="L2 block number to claim"
    )
    build_parser_.add_argument(
        "--l1-block",
        type=int,
        default=None,
        help="L1 head block number (defaults to the first L1 block whose safe head covers the L2 block)"
    )
    for dest, flag, env in _URL_FLAGS:
        build_parser_.add_argument(
            flag,
            dest=dest,
            default=os.environ.get(env),
            help=f"Endpoint URL (defaults to ${env})"
        )
    build_parser_.add_argument(
        "--chain-name",
        default=None,
        help="Named network passed to the program when no genesis file is given"
    )
    build_parser_.add_argument(
        "--rollup-path",
        type=Path,
        default=None,
        help="Path to a rollup config file (skips the registry lookup)"
    )
    build_parser_.add_argument(
        "--genesis-path",
        type=Path,
        default=None,
        help="Path to a rollup genesis file (makes the fixture self-describing)"
    )
    build_parser_.add_argument(
        "--registry",
        type=Path,
        default=None,
        help="JSON file of extra rollup configs keyed by L2 chain id"
    )
    build_parser_.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Where to write the fixture JSON"
    )

    # run-op-program command
    replay_parser = subparsers.add_parser(
        REPLAY_WORK_KIND,
        help="Replay a fixture offline, optionally under the emulator",
        parents=[parent_parser]
    )
    replay_parser.add_argument(
        "-f", "--fixture",
        type=Path,
        required=True,
        help="Path to the fixture JSON"
    )
    replay_parser.add_argument(
        "-c", "--cannon",
        type=Path,
        default=None,
        help="Path to the emulator binary"
    )
    replay_parser.add_argument(
        "--cannon-state",
        type=Path,
        default=None,
        help="Emulator input state (required with --cannon)"
    )
    replay_parser.add_argument(
        "--cannon-meta",
        type=Path,
        default=None,
        help="Emulator program metadata (required with --cannon)"
    )
    replay_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write run statistics JSON"
    )
    return parser


def _build_options(args: argparse.Namespace) -> BuildOptions:
    for dest, flag, env in _URL_FLAGS:
        if not getattr(args, dest):
            raise ValueError(f"{flag} is required (or set {env})")
    return BuildOptions(
        op_program=args.op_program,
        l2_block=args.l2_block,
        l1_block=args.l1_block,
        l1_rpc_url=args.l1_rpc_url,
        l2_rpc_url=args.l2_rpc_url,
        beacon_url=args.beacon_url,
        rollup_url=args.rollup_url,
        chain_name=args.chain_name,
        rollup_path=args.rollup_path,
        genesis_path=args.genesis_path,
        registry_path=args.registry,
        output=args.output,
    )


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point for opfp commands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    init_telemetry(verbosity=args.verbosity, json_logs=args.json_logs)
    log = logger.bind(target=args.command)

    if args.command == BUILD_WORK_KIND:
        try:
            options = _build_options(args)
            fixture = build_fixture(options)
            print(f"[OK] Fixture written: {options.output}")
            print(f"  Witnesses: {len(fixture.witness_data)}")
            sys.exit(0)
        except (OpfpError, ValueError) as e:
            log.debug("command_failed", error=str(e))
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    elif args.command == REPLAY_WORK_KIND:
        try:
            options = ReplayOptions(
                fixture=args.fixture,
                op_program=args.op_program,
                cannon=args.cannon,
                cannon_state=args.cannon_state,
                cannon_meta=args.cannon_meta,
                output=args.output,
            )
            stats = replay_fixture(options)
            print(stats.to_json())
            sys.exit(0)
        except (OpfpError, ValueError) as e:
            log.debug("command_failed", error=str(e))
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
