"""Detection of optional columns that may be absent from the remote schema.

Some deployments lag behind on migrations, so a few columns written by the
service (for example ``stock_receipt_notes.vendor_uuid``) may not exist yet.
Rather than reacting to error text, the service asks the store once whether
a column is selectable and remembers the answer for the process lifetime.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, Mapping, Tuple

from postgrest.exceptions import APIError

from .store import error_code, error_message
from .supabase_client import require_client

logger = logging.getLogger(__name__)

# PostgREST "column not in schema cache" and Postgres "undefined column".
MISSING_COLUMN_CODES = frozenset({"PGRST204", "42703"})


def is_missing_column_error(exc: BaseException) -> bool:
    return error_code(exc) in MISSING_COLUMN_CODES


class SchemaCapabilities:
    """Per-process record of which optional columns the store accepts."""

    def __init__(self) -> None:
        self._known: Dict[Tuple[str, str], bool] = {}
        self._lock = threading.Lock()

    def supports(self, table: str, column: str) -> bool:
        """Return whether ``table.column`` exists, probing the store once.

        Probe failures unrelated to the column are not cached and count as
        supported; the write itself then reports the real problem.
        """
        key = (table, column)
        with self._lock:
            if key in self._known:
                return self._known[key]

        client = require_client()
        try:
            client.table(table).select(column).limit(1).execute()
        except APIError as exc:
            if not is_missing_column_error(exc):
                logger.warning("Could not probe %s.%s: %s", table, column, error_message(exc))
                return True
            supported = False
        else:
            supported = True

        with self._lock:
            self._known[key] = supported
        return supported

    def forget(self, table: str, column: str) -> None:
        with self._lock:
            self._known.pop((table, column), None)

    def reset(self) -> None:
        with self._lock:
            self._known.clear()

    def strip_unsupported(
        self,
        table: str,
        payload: Mapping[str, Any],
        optional_columns: Iterable[str],
        tag: str,
    ) -> Dict[str, Any]:
        """Return ``payload`` without the optional columns the store lacks."""
        result = dict(payload)
        for column in optional_columns:
            if column in result and not self.supports(table, column):
                logger.warning("[%s] %s column not found in schema, writing without it", tag, column)
                del result[column]
        return result

    def write(
        self,
        table: str,
        payload: Mapping[str, Any],
        optional_columns: Iterable[str],
        write: Callable[[Dict[str, Any]], Any],
        tag: str,
    ) -> Any:
        """Run ``write`` with a payload the schema accepts.

        When the store still rejects the payload for a missing column, the
        cached answers for the optional columns are dropped, re-probed and
        the write is retried once without the columns found missing.
        """
        optional_columns = tuple(optional_columns)
        prepared = self.strip_unsupported(table, payload, optional_columns, tag)
        try:
            return write(prepared)
        except APIError as exc:
            present = [c for c in optional_columns if c in prepared]
            if not present or not is_missing_column_error(exc):
                raise
            for column in present:
                self.forget(table, column)
            retry = dict(prepared)
            for column in present:
                if not self.supports(table, column):
                    logger.warning(
                        "[%s] %s column not found in schema, retrying without it", tag, column
                    )
                    del retry[column]
            if retry == prepared:
                raise
            return write(retry)


capabilities = SchemaCapabilities()
