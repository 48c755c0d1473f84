"""Helpers shared by the services that read and write the Supabase store.

``execute()`` results are normalised here so callers always work with plain
lists of dicts, and store failures are turned into ``StoreQueryError``.
Independent reads can be issued concurrently through :func:`gather`.
"""

from __future__ import annotations

import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from django.conf import settings
from postgrest.exceptions import APIError
from supabase import SupabaseException

from ..exceptions import StoreQueryError

logger = logging.getLogger(__name__)

STORE_ERRORS = (APIError, SupabaseException)

ZERO = Decimal("0")


def rows(response: Any) -> List[Dict[str, Any]]:
    """Return the rows carried by an ``execute()`` response."""
    if response is None:
        return []
    data = getattr(response, "data", None)
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    return list(data)


def single_row(response: Any) -> Optional[Dict[str, Any]]:
    """Return the row of a ``maybe_single()``/``single()`` response."""
    if response is None:
        return None
    data = getattr(response, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def error_message(exc: BaseException) -> str:
    return getattr(exc, "message", None) or str(exc)


def error_code(exc: BaseException) -> Optional[str]:
    code = getattr(exc, "code", None)
    return str(code) if code is not None else None


def fetch(query: Any, description: str) -> List[Dict[str, Any]]:
    """Execute ``query`` and return its rows.

    Store errors raise ``StoreQueryError`` with
    ``"Error fetching <description>: <message>"``.
    """
    try:
        return rows(query.execute())
    except STORE_ERRORS as exc:
        raise StoreQueryError(
            f"Error fetching {description}: {error_message(exc)}"
        ) from exc


def fetch_one(query: Any, description: str) -> Optional[Dict[str, Any]]:
    try:
        return single_row(query.execute())
    except STORE_ERRORS as exc:
        raise StoreQueryError(f"Database error: {error_message(exc)}") from exc


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored number to ``Decimal``; blanks and garbage become 0."""
    if value is None or value == "" or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, float) and not math.isfinite(value):
        return ZERO
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def item_key(value: Any) -> str:
    """Normalise a UUID for map lookups (trimmed, lower-case)."""
    return str(value).strip().lower()


def next_number(values: Iterable[Any], prefix: str, width: int = 0) -> str:
    """Return ``<prefix>-<n>`` one past the highest ``<prefix>-<digits>`` in ``values``."""
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$", re.IGNORECASE)
    highest = 0
    for value in values:
        match = pattern.match(str(value or ""))
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{str(highest + 1).zfill(width)}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored ISO-8601 timestamp; naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def gather(
    tasks: Mapping[str, Callable[[], Any]],
    defaults: Mapping[str, Any],
    tag: str,
) -> Dict[str, Any]:
    """Run independent fetches concurrently and wait for all of them.

    A task that raises is logged under ``[tag]`` and its result replaced by
    ``defaults[name]``, so one failing fetch never aborts the others.
    """
    if not tasks:
        return {}
    workers = max(1, min(len(tasks), getattr(settings, "PROCUREMENT_REPORT_WORKERS", 4)))
    results: Dict[str, Any] = {}
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {name: executor.submit(func) for name, func in tasks.items()}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except Exception:  # pylint: disable=broad-except
                logger.exception("[%s] Error fetching %s", tag, name)
                results[name] = defaults.get(name)
    return results
