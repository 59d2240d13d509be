#!/usr/bin/env python3
"""
Ecclesia Record Keeper

Entry point: loads configuration, connects the configured substrate,
seeds an empty store and prints what it holds.

Usage:
    python -m ecclesia

    # Or against Redis
    ECCLESIA_BACKEND=document REDIS_HOST=redis.local python -m ecclesia
"""

from __future__ import annotations

import asyncio
import sys

from ecclesia.bootstrap import seed_database
from ecclesia.cache import CacheManager
from ecclesia.core.config import EcclesiaConfig
from ecclesia.core.entities import Collection
from ecclesia.core.errors import ConfigurationError
from ecclesia.observability.logging import LogLevel, setup_logging
from ecclesia.services import RecordService, total_asset_value, unpaid_tithers
from ecclesia.core.types import local_today
from ecclesia.storage import create_adapter


async def bootstrap() -> None:
    print("\n" + "=" * 60)
    print("Ecclesia Record Keeper")
    print("=" * 60 + "\n")

    try:
        config = EcclesiaConfig.load()
    except ConfigurationError as e:
        print(e.message)
        sys.exit(1)

    setup_logging(
        LogLevel.parse(config.observability.log_level),
        json_output=config.observability.log_json,
    )

    print("✓ Configuration loaded and validated")
    print(f"  Backend: {config.storage.backend.value}")

    adapter = create_adapter(config.storage)
    connected = await adapter.connect()
    if connected.is_err():
        print(f"Storage error: {connected.error}")
        sys.exit(1)

    print("✓ Storage connected")

    cache = CacheManager(adapter, ttl_seconds=config.cache.ttl_seconds)
    try:
        report = await seed_database(cache, config.seed)
        if report.ok:
            print(
                f"✓ Seed complete (sectors={report.sectors_written}, "
                f"users={report.users_written}, members={report.members_written})"
            )
        else:
            print(f"! Seed finished with errors: {'; '.join(report.errors)}")

        records = RecordService(cache)
        today = local_today()
        members = await records.get_members()
        transactions = await records.get_transactions()

        print("\n--- Records ---\n")
        for collection in Collection:
            print(f"  {collection.value:<14} {len(await cache.read(collection))}")
        pending = unpaid_tithers(members, transactions, today.year, today.month)
        print(f"\n  Tithers pending this month: {len(pending)}")
        print(f"  Asset value: {total_asset_value(await records.get_assets()):.2f}")
    finally:
        await cache.close()
        await adapter.close()

    print("\n✓ Done")
    print("=" * 60 + "\n")


async def main() -> None:
    """Main entry point."""
    try:
        await bootstrap()
    except KeyboardInterrupt:
        print("\nInterrupted")


def run() -> None:
    """Synchronous entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
