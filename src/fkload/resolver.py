"""Temporary identifier resolution."""

import logging
import threading
from typing import Any

from fkload.exceptions import DuplicateTemporaryIdError
from fkload.models import TempId

logger = logging.getLogger(__name__)


class _Unresolved:
    """Marker for a temporary identifier whose row is not stored yet."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED = _Unresolved()


def _raw(temp_id: Any) -> Any:
    return temp_id.value if isinstance(temp_id, TempId) else temp_id


class TemporaryIdentifierResolver:
    """
    Map temporary identifiers to the keys the database generated.

    One resolver lives for exactly one load. Registration and lookup are
    serialized by a lock, so sibling loaders may share an instance.

    Example:
        >>> resolver = TemporaryIdentifierResolver()
        >>> resolver.register_resolved("region", "r1", 17)
        >>> resolver.substitute("region", TempId("r1"))
        17
        >>> resolver.substitute("region", TempId("r2"))
        UNRESOLVED
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._keys: dict[tuple[str, Any], Any] = {}
        self._rows: dict[tuple[str, Any], dict[str, Any]] = {}

    def register_resolved(
        self,
        table: str,
        temp_id: Any,
        real_value: Any,
        row: dict[str, Any] | None = None,
    ) -> None:
        """
        Record the generated key of a freshly inserted row.

        Args:
            table: Table the row was inserted into
            temp_id: The row's temporary identifier (TempId or raw value)
            real_value: Generated key value
            row: Full stored row, for references to non-key columns

        Raises:
            DuplicateTemporaryIdError: If (table, temp_id) is already registered
        """
        key = (table, _raw(temp_id))
        with self._lock:
            if key in self._keys:
                raise DuplicateTemporaryIdError(table, key[1])
            self._keys[key] = real_value
            self._rows[key] = dict(row) if row else {}
        logger.debug(f"Resolved {table}:{key[1]!r} -> {real_value!r}")

    def substitute(self, table: str, value: Any, column: str | None = None) -> Any:
        """
        Replace a temporary identifier with its real value.

        Args:
            table: Referenced table
            value: Column value, a TempId or an already-real value
            column: Referenced column, when it is not the generated key

        Returns:
            The real value, value itself if it is not a TempId, or
            UNRESOLVED if the referenced row is not stored yet
        """
        if not isinstance(value, TempId):
            return value

        key = (table, value.value)
        with self._lock:
            if key not in self._keys:
                return UNRESOLVED
            row = self._rows[key]
            if column is not None and column in row:
                return row[column]
            return self._keys[key]

    def is_resolved(self, table: str, temp_id: Any) -> bool:
        with self._lock:
            return (table, _raw(temp_id)) in self._keys

    def resolved_keys(self, table: str) -> dict[Any, Any]:
        """Get temporary identifier -> generated key for one table."""
        with self._lock:
            return {tmp: real for (t, tmp), real in self._keys.items() if t == table}

    def clear(self) -> None:
        with self._lock:
            self._keys.clear()
            self._rows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
