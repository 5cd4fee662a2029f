"""PII field sets per record type.

Only free-text fields are listed. Amounts, dates, types and ids stay
plaintext so the server can filter and aggregate them.
"""

PII_FIELDS: dict[str, tuple[str, ...]] = {
    "account": ("name",),
    "transaction": ("description", "merchant", "notes"),
    "category": (),
}


def pii_fields(record_type: str) -> tuple[str, ...]:
    """Return the PII field names for ``record_type``.

    Raises:
        ValueError: If the record type is unknown.
    """
    try:
        return PII_FIELDS[record_type]
    except KeyError:
        raise ValueError(
            f"Unknown record type: {record_type} "
            f"(known: {sorted(PII_FIELDS)})"
        ) from None
