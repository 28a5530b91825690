"""Rotate CIPHER_KEY and INDEX_KEY.

Reads the current keys from the environment and the new ones from
NEW_CIPHER_KEY / NEW_INDEX_KEY. Safe to rerun after an interruption.
Deploy the new keys only after this finishes without errors.

Usage:
    python scripts/rotate_keys.py            # rotate
    python scripts/rotate_keys.py --generate # print a fresh key pair
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
from crmvault.shared.crypto import EncryptionContext, generate_keys
from crmvault.shared.logging import setup_logging


async def _rotate(new_context: EncryptionContext, *, batch_size: int) -> RotationReport:
    session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            service = KeyRotationService(session, batch_size=batch_size)
            return await service.rotate(get_encryption_context(), new_context)
    finally:
        await dispose_engine()


def main() -> None:
    if "--generate" in sys.argv[1:]:
        cipher_key, index_key = generate_keys()
        print(f"NEW_CIPHER_KEY={cipher_key}")
        print(f"NEW_INDEX_KEY={index_key}")
        return

    setup_logging()
    new_cipher_key = os.getenv("NEW_CIPHER_KEY")
    new_index_key = os.getenv("NEW_INDEX_KEY")
    if not new_cipher_key or not new_index_key:
        sys.exit("NEW_CIPHER_KEY and NEW_INDEX_KEY must be set (see --generate).")

    new_context = EncryptionContext.from_keys(new_cipher_key, new_index_key)
    batch_size = get_settings().key_rotation_batch_size
    report = asyncio.run(_rotate(new_context, batch_size=batch_size))
    print(
        f"Rotated {report.processed}/{report.total} record(s) in "
        f"{report.duration_seconds:.1f}s ({report.already_rotated} already rotated, "
        f"{report.errors} error(s))."
    )
    if report.errors:
        sys.exit(1)


if __name__ == "__main__":
    main()
