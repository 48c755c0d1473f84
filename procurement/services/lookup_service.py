"""Vendor and cost-code lookups used for name resolution in reports."""

import logging
from typing import Any, Dict, Iterable, List

from .store import fetch
from .supabase_cache import corporation_cache
from .supabase_client import require_client

logger = logging.getLogger(__name__)


def _load_vendors(corporation_uuid: str) -> List[Dict[str, Any]]:
    client = require_client()
    return fetch(
        client.table("vendors")
        .select("uuid, vendor_name, is_active")
        .eq("corporation_uuid", corporation_uuid),
        "vendors",
    )


def _load_cost_code_configurations(corporation_uuid: str) -> List[Dict[str, Any]]:
    client = require_client()
    return fetch(
        client.table("cost_code_configurations")
        .select("uuid, cost_code_number, cost_code_name, is_active")
        .eq("corporation_uuid", corporation_uuid),
        "cost code configurations",
    )


vendors_cache = corporation_cache("vendors", _load_vendors)
cost_codes_cache = corporation_cache("cost_code_configurations", _load_cost_code_configurations)


def get_vendors(corporation_uuid: str, force: bool = False) -> List[Dict[str, Any]]:
    return vendors_cache.get(corporation_uuid, force=force)


def get_cost_code_configurations(corporation_uuid: str, force: bool = False) -> List[Dict[str, Any]]:
    return cost_codes_cache.get(corporation_uuid, force=force)


def get_preferred_items(cost_code_uuids: Iterable[str]) -> List[Dict[str, Any]]:
    """Return catalog (project) items configured under ``cost_code_uuids``."""
    uuids = [u for u in cost_code_uuids if u]
    if not uuids:
        return []
    client = require_client()
    return fetch(
        client.table("cost_code_preferred_items")
        .select("uuid, item_sequence, unit, item_name, model_number")
        .in_("cost_code_configuration_uuid", uuids),
        "cost code preferred items",
    )


def vendor_names(vendors: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """Map vendor UUID to vendor name."""
    return {v["uuid"]: v.get("vendor_name") for v in vendors if v.get("uuid")}


def cost_code_label(cost_code: Dict[str, Any]) -> str:
    return f"{cost_code.get('cost_code_number') or ''} {cost_code.get('cost_code_name') or ''}".strip()


def cost_code_labels(cost_codes: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """Map cost-code UUID to its ``"<number> <name>"`` label."""
    return {cc["uuid"]: cost_code_label(cc) for cc in cost_codes if cc.get("uuid")}
