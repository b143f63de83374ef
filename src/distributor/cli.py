"""Distributor CLI — build, audit, and operate a Merkle distribution.

Usage:
    python -m distributor.cli build-tree --allocations allocations.json --out tree.json
    python -m distributor.cli check-distribution --tree tree.json
    python -m distributor.cli check-claim --tree tree.json --recipient 0xAbc...
    python -m distributor.cli status --config config/distributor.json
    python -m distributor.cli claim --tree tree.json --recipient 0xAbc...
    python -m distributor.cli sweep --amount 1000

claim and sweep act on-chain. They need RPC_URL and PRIVATE_KEY in the
environment or a .env file; the key is the custody account's.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from distributor.config import DEFAULT_CONFIG_PATH, ChainSettings, DistributorConfig
from distributor.crypto.distribution import (
    build_distribution,
    find_claim,
    load_json,
    verify_distribution,
)
from distributor.crypto.merkle import verify_proof
from distributor.disbursement.claim_ledger import ClaimLedger, unconfirmed_claims
from distributor.persistence.event_log import EventKind, EventLog


def cmd_build_tree(args: argparse.Namespace) -> int:
    try:
        document = build_distribution(load_json(args.allocations))
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    text = json.dumps(document, indent=2)
    if args.out:
        args.out.write_text(text + "\n", encoding="utf-8")
        print(f"Merkle root: {document['merkle_root']} ({len(document['claims'])} claims)")
    else:
        print(text)
    return 0


def cmd_check_distribution(args: argparse.Namespace) -> int:
    try:
        errors = verify_distribution(load_json(args.tree))
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    if errors:
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print(f"Distribution check FAILED ({len(errors)} problems)", file=sys.stderr)
        return 1
    print("Distribution check passed")
    return 0


def cmd_check_claim(args: argparse.Namespace) -> int:
    try:
        document = load_json(args.tree)
        found = find_claim(document, args.recipient)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    if found is None:
        print(f"Not in distribution: {args.recipient}", file=sys.stderr)
        return 1
    address, entry = found
    amount = args.amount if args.amount is not None else int(entry["amount"])
    root = args.root or document["merkle_root"]
    if verify_proof(address, amount, entry.get("proof", []), root):
        print(f"Valid: {address} may claim {amount}")
        return 0
    print(f"Invalid: proof for {address} amount {amount} does not match {root}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    try:
        config = DistributorConfig.from_config_file(args.config)
        event_log = EventLog(storage_path=config.event_log)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    root = config.merkle_root
    records = event_log.for_root(root)
    ledger = ClaimLedger.from_events(records, root)
    total = sum(int(e.payload["amount"]) for e in records if e.event_kind == EventKind.CLAIMED)
    status = {
        "merkle_root": root,
        "token_address": config.token_address,
        "admin": config.admin,
        "claimed_count": ledger.claimed_count,
        "total_claimed": str(total),
        "unconfirmed": unconfirmed_claims(records, root),
        "recovered_count": len(event_log.events(EventKind.RECOVERED)),
    }
    print(json.dumps(status, indent=2))
    return 0


def _make_distributor(config: DistributorConfig, settings: ChainSettings):
    """Create a distributor backed by the configured ERC-20 custody."""
    from distributor.custody.erc20 import Erc20AssetStore
    from distributor.disbursement import MerkleDistributor, OwnerRegistry, RootRegistry

    store = Erc20AssetStore.from_rpc(
        settings.rpc_url, settings.private_key, config.token_address,
        chain_id=config.chain_id,
    )
    registry = RootRegistry(config.merkle_root, store)
    return MerkleDistributor(
        registry,
        OwnerRegistry(config.admin),
        event_log=EventLog(storage_path=config.event_log),
    )


def cmd_claim(args: argparse.Namespace) -> int:
    try:
        config = DistributorConfig.from_config_file(args.config)
        settings = ChainSettings.from_env(args.env_file)
        found = find_claim(load_json(args.tree), args.recipient)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    if found is None:
        print(f"Not in distribution: {args.recipient}", file=sys.stderr)
        return 1
    address, entry = found

    distributor = _make_distributor(config, settings)
    result = distributor.claim(address, int(entry["amount"]), entry.get("proof", []))
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed ({result.reason.value}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_sweep(args: argparse.Namespace) -> int:
    from eth_account import Account
    from distributor.custody.erc20 import Erc20AssetStore

    try:
        config = DistributorConfig.from_config_file(args.config)
        settings = ChainSettings.from_env(args.env_file)
    except (OSError, ValueError) as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1

    distributor = _make_distributor(config, settings)
    asset = distributor.asset
    if args.token:
        asset = Erc20AssetStore.from_rpc(
            settings.rpc_url, settings.private_key, args.token,
            chain_id=config.chain_id,
        )
    caller = Account.from_key(settings.private_key).address
    result = distributor.sweep(caller, asset, args.amount)
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed ({result.reason.value}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="distributor",
        description="Merkle distributor — one-time token allocation claims",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log claim and transfer activity to stderr",
    )
    sub = parser.add_subparsers(dest="command")

    # build-tree
    p_build = sub.add_parser("build-tree", help="Build a distribution from an allocation list")
    p_build.add_argument("--allocations", type=Path, required=True,
                         help="JSON object mapping address to amount")
    p_build.add_argument("--out", type=Path, help="Write the distribution here (default: stdout)")

    # check-distribution
    p_audit = sub.add_parser("check-distribution", help="Audit a distribution document")
    p_audit.add_argument("--tree", type=Path, required=True, help="Distribution JSON")

    # check-claim
    p_check = sub.add_parser("check-claim", help="Verify one recipient's proof off-line")
    p_check.add_argument("--tree", type=Path, required=True, help="Distribution JSON")
    p_check.add_argument("--recipient", required=True, help="Recipient address")
    p_check.add_argument("--amount", type=int, help="Amount to check (default: from tree)")
    p_check.add_argument("--root", help="Root to check against (default: from tree)")

    # status
    p_status = sub.add_parser("status", help="Summarise claims recorded in the event log")
    p_status.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH,
                          help="Distributor config (default: config/distributor.json)")

    # claim
    p_claim = sub.add_parser("claim", help="Claim a recipient's allocation on-chain")
    p_claim.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    p_claim.add_argument("--tree", type=Path, required=True, help="Distribution JSON")
    p_claim.add_argument("--recipient", required=True, help="Recipient address")
    p_claim.add_argument("--env-file", type=Path, help=".env with RPC_URL and PRIVATE_KEY")

    # sweep
    p_sweep = sub.add_parser("sweep", help="Recover custody funds to the admin (admin key only)")
    p_sweep.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    p_sweep.add_argument("--amount", type=int, required=True, help="Amount in smallest units")
    p_sweep.add_argument("--token", help="Token to sweep (default: the distributed token)")
    p_sweep.add_argument("--env-file", type=Path, help=".env with RPC_URL and PRIVATE_KEY")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "build-tree": cmd_build_tree,
        "check-distribution": cmd_check_distribution,
        "check-claim": cmd_check_claim,
        "status": cmd_status,
        "claim": cmd_claim,
        "sweep": cmd_sweep,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
