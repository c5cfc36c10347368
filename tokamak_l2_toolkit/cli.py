#!/usr/bin/env python3
"""
Unified CLI for the Tokamak L2 toolkit.

Examples:
  - Keys
    tokamak-l2 derive-keys --signature 0x...
    tokamak-l2 derive-keys --seed "participant seed"

  - Transactions
    tokamak-l2 create-tx --seed "participant seed" --to 0x... --data 0xa9059cbb... --nonce 0

  - State
    tokamak-l2 init-state --config channel.json [--rpc-url https://...] [--channel-id 0x01]
    tokamak-l2 capture-snapshot --snapshot snapshot.json [--permutations permutations.json]
    tokamak-l2 validate-snapshot --snapshot snapshot.json
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from tokamak_l2_toolkit.commands.helpers import handle_command_error
from tokamak_l2_toolkit.commands.validation import (
    parse_hex_string,
    validate_eth_address,
)
from tokamak_l2_toolkit.crypto.backend import default_crypto_backend
from tokamak_l2_toolkit.shared.exceptions import ConfigurationException
from tokamak_l2_toolkit.shared.logging import get_logger
from tokamak_l2_toolkit.shared.services.web3_service import Web3Service
from tokamak_l2_toolkit.state.channel import (
    ChannelStateConfig,
    create_state_manager_opts_from_channel_config,
    initial_snapshot_template,
)
from tokamak_l2_toolkit.state.constructors import (
    create_state_manager_from_snapshot,
    create_state_manager_from_source,
)
from tokamak_l2_toolkit.state.snapshot import StateSnapshot, validate_state_snapshot
from tokamak_l2_toolkit.state.sources import RpcUpstreamSource
from tokamak_l2_toolkit.state.types import PermutationForAddress
from tokamak_l2_toolkit.tx.constructors import create_l2_tx
from tokamak_l2_toolkit.tx.types import L2TxData
from tokamak_l2_toolkit.utils import bytes_to_hex, hex_to_bytes
from tokamak_l2_toolkit.utils.formatters import (
    console,
    create_errors_table,
    create_roots_table,
    generate_timestamped_filename,
    load_json,
    save_json_output,
)
from tokamak_l2_toolkit.utils.keys import (
    L2KeyPair,
    derive_l2_address_from_keys,
    derive_l2_keys_from_seed,
    derive_l2_keys_from_signature,
)

logger = get_logger(__name__)


def _keys_from_args(args: argparse.Namespace) -> L2KeyPair:
    if args.signature:
        return derive_l2_keys_from_signature(args.signature)
    if args.seed:
        return derive_l2_keys_from_seed(args.seed)
    raise ValueError("Either --signature or --seed is required")


def cmd_derive_keys(args: argparse.Namespace) -> None:
    keys = _keys_from_args(args)
    out = {
        "private_key": bytes_to_hex(keys.private_key),
        "public_key": bytes_to_hex(keys.public_key),
        "l2_address": derive_l2_address_from_keys(keys),
    }

    console.print(f"L2 address: [bold]{out['l2_address']}[/bold]")
    console.print(f"Public key: {out['public_key']}")
    if args.output:
        save_json_output(out, args.output)


def cmd_create_tx(args: argparse.Namespace) -> None:
    keys = _keys_from_args(args)
    backend = default_crypto_backend()
    tx = create_l2_tx(
        L2TxData(
            nonce=args.nonce,
            to=validate_eth_address(args.to, "to"),
            data=hex_to_bytes(parse_hex_string(args.data, "data")),
            sender_pub_key=keys.public_key,
        ),
        backend,
    ).sign(keys.private_key)

    out = {
        **tx.to_dict(),
        "sender": tx.get_sender_checksum_address(),
        "serialized": bytes_to_hex(tx.serialize()),
        "hash": bytes_to_hex(tx.hash()),
    }
    console.print(f"Signed transaction from {out['sender']} (hash {out['hash']})")
    console.print(out["serialized"])
    if args.output:
        save_json_output(out, args.output)


def cmd_validate_snapshot(args: argparse.Namespace) -> None:
    result = validate_state_snapshot(load_json(args.snapshot))
    if result.success:
        summary = result.data
        console.print(
            f"[green]Snapshot is valid[/green]: {summary.address_count} storage "
            f"addresses, key counts {summary.key_counts}"
        )
        return

    affected = [i for i in result.errors_by_address() if i is not None]
    console.print(
        f"[red]Snapshot is invalid[/red]: {len(result.errors)} problems, "
        f"{len(affected)} storage addresses affected"
    )
    if result.is_critical():
        console.print("Validation stopped early; fix the listed problems and rerun")
    console.print(create_errors_table(result.errors))
    if args.output:
        save_json_output(result.to_dict(), args.output)
    sys.exit(1)


def _resolve_rpc_source(args: argparse.Namespace, network: str) -> RpcUpstreamSource:
    if args.rpc_url:
        return RpcUpstreamSource.from_rpc_url(args.rpc_url)
    try:
        return RpcUpstreamSource(Web3Service.get_instance(network))
    except ConfigurationException as e:
        raise ConfigurationException(f"{e} Or pass --rpc-url.") from e


def cmd_init_state(args: argparse.Namespace) -> None:
    async def run():
        config = ChannelStateConfig.from_dict(load_json(args.config))
        if args.block_number is not None:
            config.block_number = args.block_number
        opts = create_state_manager_opts_from_channel_config(config)
        source = _resolve_rpc_source(args, config.network)

        console.print(
            f"Initializing {len(opts.init_storage_keys)} storage addresses "
            f"from {config.network} at block {config.block_number}..."
        )
        manager = await create_state_manager_from_source(
            source, opts, default_crypto_backend()
        )
        template = initial_snapshot_template(
            config, opts, parse_hex_string(args.channel_id, "channel_id")
        )
        snapshot = await manager.capture_snapshot(template)

        console.print(
            create_roots_table(snapshot.storage_addresses, snapshot.state_roots)
        )
        filename = args.output or generate_timestamped_filename("state_snapshot")
        save_json_output(snapshot.to_dict(), filename)

    asyncio.run(run())


def _load_permutations(path: str) -> List[PermutationForAddress]:
    data = load_json(path)
    if not isinstance(data, dict):
        raise ValueError("Permutations file must map addresses to index arrays")
    return [
        PermutationForAddress(address=validate_eth_address(address), permutation=list(p))
        for address, p in data.items()
    ]


def cmd_capture_snapshot(args: argparse.Namespace) -> None:
    async def run():
        data = load_json(args.snapshot)
        result = validate_state_snapshot(data)
        if not result.success:
            console.print(create_errors_table(result.errors))
            raise ValueError("Snapshot failed validation")
        prior = StateSnapshot.from_dict(data)

        manager = await create_state_manager_from_snapshot(
            prior, default_crypto_backend()
        )
        permutations = _load_permutations(args.permutations) if args.permutations else []
        await manager.updated_roots(permutations)
        snapshot = await manager.capture_snapshot(prior)

        console.print(
            create_roots_table(snapshot.storage_addresses, snapshot.state_roots)
        )
        filename = args.output or generate_timestamped_filename("state_snapshot")
        save_json_output(snapshot.to_dict(), filename)

    asyncio.run(run())


def _add_key_source(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--signature", type=str, help="L1 signature to derive keys from")
    group.add_argument("--seed", type=str, help="Participant L2 seed (prvSeedL2)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokamak-l2",
        description="Unified CLI for the Tokamak L2 toolkit",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # derive-keys
    p_keys = sub.add_parser("derive-keys", help="Derive an L2 key pair and address")
    _add_key_source(p_keys)
    p_keys.add_argument("--output", type=str, help="Output filename")
    p_keys.set_defaults(func=cmd_derive_keys)

    # create-tx
    p_tx = sub.add_parser("create-tx", help="Create and sign an L2 transaction")
    _add_key_source(p_tx)
    p_tx.add_argument("--to", type=str, required=True)
    p_tx.add_argument("--data", type=str, default="0x")
    p_tx.add_argument("--nonce", type=int, default=0)
    p_tx.add_argument("--output", type=str, help="Output filename")
    p_tx.set_defaults(func=cmd_create_tx)

    # validate-snapshot
    p_vs = sub.add_parser("validate-snapshot", help="Validate a state snapshot file")
    p_vs.add_argument("--snapshot", type=str, required=True)
    p_vs.add_argument("--output", type=str, help="Write the validation report as JSON")
    p_vs.set_defaults(func=cmd_validate_snapshot)

    # init-state
    p_init = sub.add_parser(
        "init-state", help="Initialize channel state from L1 and write a snapshot"
    )
    p_init.add_argument("--config", type=str, required=True, help="Channel config JSON")
    p_init.add_argument("--rpc-url", type=str, help="Overrides RPC_URL from .env")
    p_init.add_argument("--block-number", type=int)
    p_init.add_argument("--channel-id", type=str, default="0x")
    p_init.add_argument("--output", type=str, help="Output filename")
    p_init.set_defaults(func=cmd_init_state)

    # capture-snapshot
    p_cap = sub.add_parser(
        "capture-snapshot",
        help="Rebuild state from a snapshot, optionally permute, and capture it again",
    )
    p_cap.add_argument("--snapshot", type=str, required=True)
    p_cap.add_argument(
        "--permutations", type=str, help="JSON mapping address -> index permutation"
    )
    p_cap.add_argument("--output", type=str, help="Output filename")
    p_cap.set_defaults(func=cmd_capture_snapshot)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        handle_command_error(e)


if __name__ == "__main__":
    main()
