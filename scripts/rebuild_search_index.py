"""Rebuild every blind-index table from the encrypted source fields.

Needed after changing the tokenizer or restoring index tables from a backup.
Uses CIPHER_KEY and INDEX_KEY from the environment.

Usage:
    python scripts/rebuild_search_index.py
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from crmvault.config import get_encryption_context, get_settings
from crmvault.domain.keys.rotation import KeyRotationService, RotationReport
from crmvault.infrastructure.database.connection import dispose_engine, get_session_factory
from crmvault.shared.logging import setup_logging


async def _rebuild(*, batch_size: int) -> RotationReport:
    session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            service = KeyRotationService(session, batch_size=batch_size)
            return await service.rebuild_indexes(get_encryption_context())
    finally:
        await dispose_engine()


def main() -> None:
    setup_logging()
    default_batch_size = get_settings().key_rotation_batch_size
    batch_size = int(os.getenv("CRMVAULT_REBUILD_BATCH_SIZE", str(default_batch_size)))
    report = asyncio.run(_rebuild(batch_size=batch_size))
    print(
        f"Rebuilt search index for {report.processed}/{report.total} record(s), "
        f"{report.errors} error(s)."
    )
    if report.errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
