"""Entity -> TSV line transformation.

Output format: `organisasjonsnummer<TAB>navn<NEWLINE>`, UTF-8, no header.
Field contents are written verbatim (no escaping, no trimming).
"""

from __future__ import annotations

from typing import Any, Mapping

from etl.errors import DecodeError

FIELD_ID = "organisasjonsnummer"
FIELD_NAME = "navn"


def _field(entity: Mapping[str, Any], key: str) -> str:
    value = entity.get(key)
    if value is None:
        ident = entity.get(FIELD_ID) if key != FIELD_ID else None
        where = f" (organisasjonsnummer={ident})" if ident is not None else ""
        raise DecodeError(f"Entity is missing required field '{key}'{where}")
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        raise DecodeError(f"Field '{key}' must be a scalar, got {type(value).__name__}")
    return str(value)


def format_line(entity: Mapping[str, Any]) -> str:
    """Format one registry entity as a tab-separated, newline-terminated line.

    Raises:
        DecodeError: If the identifier or name is missing or null.
    """
    return f"{_field(entity, FIELD_ID)}\t{_field(entity, FIELD_NAME)}\n"
