"""Offline key rotation and search index rebuilds.

Rotation re-encrypts every envelope under the new cipher key and rebuilds
every search index under the new index key, one batch per transaction.

A row that no longer opens under the old key but opens under the new one
was rotated by an earlier, interrupted run; it is re-indexed and counted as
``already_rotated``. Rerunning a rotation is therefore safe.
"""

import time
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crmvault.config import get_settings
from crmvault.domain.directory.indexing import ENCRYPTED_ENTITIES, EncryptedEntity
from crmvault.shared.blind_index import BlindIndexHasher
from crmvault.shared.crypto import EncryptionContext, EnvelopeCipher
from crmvault.shared.exceptions import DecryptionError
from crmvault.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RotationReport:
    """Outcome of one rotation or rebuild run.

    ``errors`` counts rows left untouched. ``failed_fields`` counts, per
    ``entity.field``, the fields that opened under neither key.
    """

    total: int = 0
    processed: int = 0
    errors: int = 0
    already_rotated: int = 0
    duration_seconds: float = 0.0
    per_entity: dict[str, int] = field(default_factory=dict)
    failed_fields: dict[str, int] = field(default_factory=dict)


class KeyRotationService:
    """Re-encrypt and re-index every encrypted entity.

    Commits after every batch: a rotation over a large table must not hold
    one transaction open for its whole duration.
    """

    def __init__(self, session: AsyncSession, batch_size: int | None = None) -> None:
        self.session = session
        self.batch_size = batch_size or get_settings().key_rotation_batch_size

    async def rotate(
        self,
        old_context: EncryptionContext,
        new_context: EncryptionContext,
        batch_size: int | None = None,
    ) -> RotationReport:
        """Move every envelope and index row from ``old_context`` to ``new_context``."""
        return await self._run(
            EnvelopeCipher(old_context),
            EnvelopeCipher(new_context),
            BlindIndexHasher(new_context),
            batch_size=batch_size or self.batch_size,
            reencrypt=True,
        )

    async def rebuild_indexes(
        self,
        context: EncryptionContext,
        batch_size: int | None = None,
    ) -> RotationReport:
        """Recompute every search index from the decrypted source fields."""
        cipher = EnvelopeCipher(context)
        return await self._run(
            cipher,
            cipher,
            BlindIndexHasher(context),
            batch_size=batch_size or self.batch_size,
            reencrypt=False,
        )

    async def _run(
        self,
        old_cipher: EnvelopeCipher,
        new_cipher: EnvelopeCipher,
        hasher: BlindIndexHasher,
        *,
        batch_size: int,
        reencrypt: bool,
    ) -> RotationReport:
        report = RotationReport()
        start_time = time.monotonic()
        logger.info("key_rotation_started", reencrypt=reencrypt, batch_size=batch_size)

        for entity in ENCRYPTED_ENTITIES:
            before = report.processed
            await self._run_entity(
                entity,
                old_cipher,
                new_cipher,
                hasher,
                report,
                batch_size=batch_size,
                reencrypt=reencrypt,
            )
            report.per_entity[entity.name] = report.processed - before

        report.duration_seconds = time.monotonic() - start_time
        logger.info(
            "key_rotation_completed",
            reencrypt=reencrypt,
            total=report.total,
            processed=report.processed,
            errors=report.errors,
            already_rotated=report.already_rotated,
            duration_seconds=round(report.duration_seconds, 3),
        )
        return report

    async def _run_entity(
        self,
        entity: EncryptedEntity,
        old_cipher: EnvelopeCipher,
        new_cipher: EnvelopeCipher,
        hasher: BlindIndexHasher,
        report: RotationReport,
        *,
        batch_size: int,
        reencrypt: bool,
    ) -> None:
        repository = entity.repository(self.session)
        search_index = entity.search_index(self.session)

        async for batch in repository.iter_batches(batch_size):
            for row in batch:
                report.total += 1
                opened = self._open(
                    entity, row, old_cipher, new_cipher, report, reencrypt=reencrypt
                )
                if opened is None:
                    report.errors += 1
                    continue
                plaintext, rotated = opened
                if rotated:
                    report.already_rotated += 1
                elif reencrypt:
                    entity.write_envelopes(
                        row,
                        {
                            name: None if value is None else new_cipher.encrypt(value)
                            for name, value in plaintext.items()
                        },
                    )
                await entity.write_index(search_index, hasher, row.id, plaintext)
                report.processed += 1

            await self.session.commit()
            logger.info(
                "key_rotation_batch_committed",
                entity=entity.name,
                processed=report.processed,
                errors=report.errors,
            )

    def _open(
        self,
        entity: EncryptedEntity,
        row: Any,
        old_cipher: EnvelopeCipher,
        new_cipher: EnvelopeCipher,
        report: RotationReport,
        *,
        reencrypt: bool,
    ) -> tuple[dict[str, str | None], bool] | None:
        """Decrypt a row; the flag says it was already under the new key.

        Returns ``None`` when a field opens under neither key. Each such field
        is logged and counted in ``report.failed_fields``.
        """
        envelopes = entity.read_envelopes(row)
        plaintext, failed = _open_fields(old_cipher, envelopes)
        if not failed:
            return plaintext, False
        if reencrypt:
            rotated, still_failed = _open_fields(new_cipher, envelopes)
            if not still_failed:
                return rotated, True
            # Fields under neither key; mixed-key rows keep the old failures
            failed = {n: e for n, e in failed.items() if n in still_failed} or failed

        for name, error in failed.items():
            key = f"{entity.name}.{name}"
            report.failed_fields[key] = report.failed_fields.get(key, 0) + 1
            logger.error(
                "key_rotation_field_failed",
                entity=entity.name,
                entity_id=str(row.id),
                field_name=name,
                error=error,
            )
        return None


def _open_fields(
    cipher: EnvelopeCipher,
    envelopes: dict[str, str | None],
) -> tuple[dict[str, str | None], dict[str, str]]:
    """Decrypt what opens; failures map field name to error class name."""
    plaintext: dict[str, str | None] = {}
    failed: dict[str, str] = {}
    for name, envelope in envelopes.items():
        try:
            plaintext[name] = cipher.decrypt_optional(envelope)
        except DecryptionError as e:
            failed[name] = type(e).__name__
    return plaintext, failed
