#!/usr/bin/env python3
"""Audit distribution documents before their roots are committed.

Usage:
    python3 tools/check_distribution.py tree.json [more.json ...]

Exits non-zero if any document is inconsistent.
"""

import sys
from pathlib import Path

# Add src to path for distributor imports
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from distributor.crypto.distribution import load_json, verify_distribution


def check(paths: list[Path]) -> int:
    failed = 0
    for path in paths:
        errors = verify_distribution(load_json(path))
        if errors:
            failed += 1
            print(f"{path}: FAILED")
            for err in errors:
                print(f"  - {err}")
        else:
            print(f"{path}: ok")
    return 1 if failed else 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        raise SystemExit(1)
    raise SystemExit(check([Path(p) for p in sys.argv[1:]]))
