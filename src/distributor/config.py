"""Distributor configuration.

Two sources:
- config/distributor.json — the public, committed parameters of one
  distribution (root, token, admin, chain, event log location).
- Environment / .env — chain credentials, never committed.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from distributor.crypto.merkle import normalize_address, to_bytes32

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "distributor.json"


@dataclass(frozen=True)
class DistributorConfig:
    """Committed parameters of a distribution.

    merkle_root is stored as lowercase 0x-prefixed hex, the form the event
    log records it in. Relative event_log paths resolve against the config
    file's directory.
    """

    merkle_root: str
    token_address: str
    admin: str
    chain_id: int = 11155111
    event_log: Optional[Path] = None

    @classmethod
    def from_config_file(cls, path: Path = DEFAULT_CONFIG_PATH) -> DistributorConfig:
        """Load and validate a distributor.json file.

        Raises ValueError on a missing key or a malformed root/address.
        """
        params = json.loads(path.read_text(encoding="utf-8"))
        try:
            root = params["merkle_root"]
            token = params["token_address"]
            admin = params["admin"]
        except KeyError as e:
            raise ValueError(f"Missing config key in {path}: {e.args[0]}") from e

        root = "0x" + to_bytes32(root).hex()
        event_log = params.get("event_log")
        event_log_path: Optional[Path] = None
        if event_log:
            event_log_path = Path(event_log)
            if not event_log_path.is_absolute():
                event_log_path = path.parent / event_log_path

        return cls(
            merkle_root=root,
            token_address=normalize_address(token),
            admin=normalize_address(admin),
            chain_id=int(params.get("chain_id", 11155111)),
            event_log=event_log_path,
        )


@dataclass(frozen=True)
class ChainSettings:
    """RPC endpoint and signing key for on-chain custody."""

    rpc_url: str
    private_key: str

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> ChainSettings:
        """Read RPC_URL and PRIVATE_KEY, loading env_file first if given.

        Raises ValueError if either is missing.
        """
        load_dotenv(env_file)
        rpc_url = os.getenv("RPC_URL")
        private_key = os.getenv("PRIVATE_KEY")
        if not rpc_url or not private_key:
            raise ValueError("Missing RPC_URL and/or PRIVATE_KEY in environment or .env")
        return cls(rpc_url=rpc_url, private_key=private_key)
