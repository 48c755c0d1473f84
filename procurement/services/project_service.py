"""Project records: listing, creation, updates and deletion."""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import InvalidPayloadError, MissingParameterError, ProjectNotFoundError, StoreQueryError
from .store import STORE_ERRORS, error_message, fetch, fetch_one, next_number, rows
from .supabase_cache import corporation_cache
from .supabase_client import require_client

logger = logging.getLogger(__name__)

PROJECT_STATUSES = ("Pending", "In Progress", "Completed", "On Hold")
DEFAULT_STATUS = "Pending"
REQUIRED_FIELDS = ("corporation_uuid", "project_name", "project_type_uuid", "service_type_uuid")
PROJECT_ID_PREFIX = "PRO"

UPDATABLE_FIELDS = (
    "project_name",
    "project_id",
    "project_type_uuid",
    "service_type_uuid",
    "project_address_uuid",
    "project_description",
    "estimated_amount",
    "area_sq_ft",
    "no_of_rooms",
    "contingency_percentage",
    "customer_name",
    "customer_uuid",
    "project_status",
    "project_start_date",
    "project_estimated_completion_date",
    "only_total",
    "enable_labor",
    "enable_material",
)

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _load_projects(corporation_uuid: str) -> List[Dict[str, Any]]:
    client = require_client()
    return fetch(
        client.table("projects")
        .select("*")
        .eq("corporation_uuid", corporation_uuid)
        .eq("is_active", True)
        .order("created_at", desc=True),
        "projects",
    )


projects_cache = corporation_cache("projects", _load_projects)


def list_projects(corporation_uuid: Optional[str], force: bool = False) -> List[Dict[str, Any]]:
    if not corporation_uuid:
        raise MissingParameterError("corporation_uuid is required")
    return projects_cache.get(corporation_uuid, force=force)


def _utc_date(value: Any, end_of_day: bool = False) -> Optional[str]:
    if value is None or value == "":
        return None
    text = str(value)
    if _DATE_ONLY.match(text):
        return f"{text}T23:59:59.000Z" if end_of_day else f"{text}T00:00:00.000Z"
    return text


def _number(value: Any, cast=float, default=None):
    if value in (None, ""):
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def _validated_status(value: Any) -> str:
    status = value or DEFAULT_STATUS
    if status not in PROJECT_STATUSES:
        raise InvalidPayloadError(
            f"Invalid project_status '{status}'; expected one of {', '.join(PROJECT_STATUSES)}"
        )
    return status


def _project_id_taken(corporation_uuid: str, project_id: str, exclude_uuid: Optional[str] = None) -> bool:
    client = require_client()
    query = client.table("projects").select("uuid").eq("corporation_uuid", corporation_uuid).eq("project_id", project_id)
    if exclude_uuid:
        query = query.neq("uuid", exclude_uuid)
    return bool(fetch(query, "project ids"))


def next_project_id(corporation_uuid: str) -> str:
    """``PRO-<n>`` (six digits at least) past the corporation's recent projects."""
    client = require_client()
    recent = fetch(
        client.table("projects")
        .select("project_id")
        .eq("corporation_uuid", corporation_uuid)
        .order("created_at", desc=True)
        .limit(200),
        "project ids",
    )
    return next_number((r.get("project_id") for r in recent), PROJECT_ID_PREFIX, 6)


def _clean(field: str, value: Any) -> Any:
    if field in ("estimated_amount", "contingency_percentage"):
        return _number(value, float, 0.0)
    if field in ("area_sq_ft", "no_of_rooms"):
        return _number(value, int)
    if field == "project_start_date":
        return _utc_date(value)
    if field == "project_estimated_completion_date":
        return _utc_date(value, end_of_day=True)
    if field == "project_status":
        return _validated_status(value)
    return value


def create_project(body: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Create a project, allocating a ``PRO-`` id when none (or a taken one) is given."""
    if not body:
        raise InvalidPayloadError("Request body is required")
    for field in REQUIRED_FIELDS:
        if not body.get(field):
            raise MissingParameterError(f"{field} is required")

    corporation_uuid = body["corporation_uuid"]
    project_id = body.get("project_id")
    if not project_id or _project_id_taken(corporation_uuid, project_id):
        project_id = next_project_id(corporation_uuid)

    payload = {
        "corporation_uuid": corporation_uuid,
        "project_name": body["project_name"],
        "project_id": project_id,
        "project_type_uuid": body["project_type_uuid"],
        "service_type_uuid": body["service_type_uuid"],
        "project_description": body.get("project_description") or None,
        "estimated_amount": _number(body.get("estimated_amount"), float, 0.0),
        "area_sq_ft": _number(body.get("area_sq_ft"), int),
        "no_of_rooms": _number(body.get("no_of_rooms"), int),
        "contingency_percentage": _number(body.get("contingency_percentage"), float, 0.0),
        "customer_name": body.get("customer_name") or None,
        "customer_uuid": body.get("customer_uuid") or None,
        "project_status": _validated_status(body.get("project_status")),
        "project_start_date": _utc_date(body.get("project_start_date")),
        "project_estimated_completion_date": _utc_date(body.get("project_estimated_completion_date"), end_of_day=True),
        "only_total": bool(body.get("only_total")),
        "enable_labor": bool(body.get("enable_labor")),
        "enable_material": bool(body.get("enable_material")),
        "is_active": True,
    }

    client = require_client()
    try:
        data = rows(client.table("projects").insert([payload]).execute())
    except STORE_ERRORS as exc:
        raise StoreQueryError(f"Error creating project: {error_message(exc)}") from exc
    projects_cache.invalidate(corporation_uuid)
    return data[0] if data else payload


def get_project(project_uuid: str) -> Dict[str, Any]:
    client = require_client()
    project = fetch_one(client.table("projects").select("*").eq("uuid", project_uuid).maybe_single(), "project")
    if not project:
        raise ProjectNotFoundError("Project not found")
    return project


def update_project(body: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Write the updatable fields present in ``body``."""
    if not body:
        raise InvalidPayloadError("Request body is required")
    project_uuid = body.get("uuid")
    if not project_uuid:
        raise MissingParameterError("Project UUID is required for update")

    existing = get_project(project_uuid)
    corporation_uuid = existing.get("corporation_uuid")
    if body.get("project_id") and body["project_id"] != existing.get("project_id"):
        if _project_id_taken(corporation_uuid, body["project_id"], exclude_uuid=project_uuid):
            raise InvalidPayloadError("Project ID already exists for this corporation")

    changes = {field: _clean(field, body[field]) for field in UPDATABLE_FIELDS if field in body}
    if not changes:
        return existing

    client = require_client()
    try:
        data = rows(client.table("projects").update(changes).eq("uuid", project_uuid).execute())
    except STORE_ERRORS as exc:
        raise StoreQueryError(f"Error updating project: {error_message(exc)}") from exc
    projects_cache.invalidate(corporation_uuid)
    return data[0] if data else {**existing, **changes}


def _active_estimates(project_uuid: str) -> List[Dict[str, Any]]:
    client = require_client()
    return fetch(
        client.table("estimates")
        .select("uuid, estimate_number, estimate_date, status")
        .eq("project_uuid", project_uuid)
        .eq("is_active", True)
        .limit(10),
        "estimate references",
    )


def delete_project(project_uuid: Optional[str], hard: bool = False) -> Dict[str, Any]:
    """Soft delete a project, or remove the row when ``hard`` is set.

    Projects still referenced by active estimates are not deleted.
    """
    if not project_uuid:
        raise MissingParameterError("Project UUID is required for deletion")
    project = get_project(project_uuid)

    estimates = _active_estimates(project_uuid)
    if estimates:
        shown = " (showing first 10)" if len(estimates) >= 10 else ""
        raise InvalidPayloadError(
            f"Cannot delete project. It is currently being used by {len(estimates)} active "
            f"estimate(s){shown}. Please delete these estimates before deleting the project."
        )

    client = require_client()
    table = client.table("projects")
    query = table.delete() if hard else table.update({"is_active": False})
    try:
        data = rows(query.eq("uuid", project_uuid).execute())
    except STORE_ERRORS as exc:
        raise StoreQueryError(f"Error deleting project: {error_message(exc)}") from exc
    projects_cache.invalidate(project.get("corporation_uuid"))
    if hard:
        logger.info("Hard deleted project %s", project_uuid)
    return data[0] if data else project
