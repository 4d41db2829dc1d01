#!/usr/bin/env python3
"""
Health check script for Crypto Tracker.

Returns exit code 0 if healthy, non-zero otherwise.

Checks:
1. Key/value store opens and alerts are readable
2. CoinGecko API is reachable
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cryptotracker.api import CoinGeckoClient
from cryptotracker.errors import PersistenceError
from cryptotracker.storage import AlertStore, KeyValueStore


async def check_api() -> bool:
    async with CoinGeckoClient() as client:
        return await client.ping()


def check_health() -> bool:
    """
    Perform health checks.

    Returns:
        True if healthy, False otherwise
    """
    # Check 1: Store connectivity
    try:
        kv = KeyValueStore()
        kv.keys()
    except PersistenceError as e:
        print(f"FAIL: Store error: {e}")
        return False

    alerts = AlertStore(kv)
    print(f"OK: Store readable ({len(alerts)} alert(s))")

    # Check 2: Price API
    if not asyncio.run(check_api()):
        print("FAIL: CoinGecko API unreachable")
        return False
    print("OK: CoinGecko API reachable")

    return True


if __name__ == "__main__":
    sys.exit(0 if check_health() else 1)
