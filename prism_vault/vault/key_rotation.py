"""
Vault Passphrase Rotation — Batch re-encryption of record fields.

Re-encrypts the PII fields of a dataset from an engine unlocked with the old
passphrase to one unlocked with the new passphrase. Records are processed in
batches so progress can be logged for large datasets. Plaintext fields that
predate encryption are encrypted under the new key on the way through.

A field that cannot be decrypted with the old key keeps its stored value
and its record is counted as an error; nothing is replaced by the sentinel.

Security Note:
    Plaintext exists in memory only during re-encryption of each record.
    Never log plaintext or ciphertext values.
"""
import logging
from typing import Any, Iterable, Mapping, Sequence

from .crypto import is_encrypted
from .engine import EncryptionEngine
from .errors import DecryptionError, NotUnlockedError

logger = logging.getLogger("prism.vault")


def _rotate_record(
    record: Mapping[str, Any],
    fields: Sequence[str],
    source: EncryptionEngine,
    target: EncryptionEngine,
) -> tuple[dict[str, Any], bool]:
    """Re-encrypt one record.

    Returns:
        Tuple of (new_record, changed).

    Raises:
        DecryptionError: If any field fails to decrypt under ``source``.
    """
    result = dict(record)
    changed = False
    for field in fields:
        value = result.get(field)
        if not value or not isinstance(value, str):
            continue
        plaintext = source.decrypt(value, strict=True) if is_encrypted(value) else value
        result[field] = target.encrypt(plaintext)
        changed = True
    return result, changed


def rotate_passphrase(
    records: Iterable[Mapping[str, Any]],
    fields: Iterable[str],
    source: EncryptionEngine,
    target: EncryptionEngine,
    batch_size: int = 100,
) -> tuple[list[Mapping[str, Any]], dict]:
    """Re-encrypt ``fields`` of every record from ``source`` to ``target``.

    Args:
        records: Records as fetched from the remote store.
        fields: PII field names for this record type.
        source: Engine unlocked with the old passphrase.
        target: Engine unlocked with the new passphrase.
        batch_size: Number of records per logged batch.

    Returns:
        Tuple of (rotated records in input order, stats dict with keys
        total, rotated, errors, skipped).

    Raises:
        NotUnlockedError: If either engine is locked.
        ValueError: If batch_size is not positive.
    """
    if not source.is_active():
        raise NotUnlockedError("Source engine must be unlocked with the old passphrase")
    if not target.is_active():
        raise NotUnlockedError("Target engine must be unlocked with the new passphrase")
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    fields = tuple(fields)
    records = list(records)
    rotated: list[Mapping[str, Any]] = []
    stats = {"total": 0, "rotated": 0, "errors": 0, "skipped": 0}

    logger.info(
        "Starting passphrase rotation (%d records, batch_size=%d)",
        len(records), batch_size,
    )

    for offset in range(0, len(records), batch_size):
        batch = records[offset:offset + batch_size]
        batch_num = (offset // batch_size) + 1
        logger.info("Processing batch %d (%d records)", batch_num, len(batch))

        for index, record in enumerate(batch, start=offset):
            stats["total"] += 1
            try:
                new_record, changed = _rotate_record(record, fields, source, target)
            except DecryptionError as err:
                logger.error("Error rotating record #%d: %s", index, err)
                stats["errors"] += 1
                rotated.append(record)
                continue
            if changed:
                stats["rotated"] += 1
                rotated.append(new_record)
            else:
                stats["skipped"] += 1
                rotated.append(record)

    logger.info("Passphrase rotation complete: %s", stats)
    return rotated, stats
