"""Query-string helpers shared by the API views."""

TRUE_VALUES = ("1", "true", "yes", "on")


def query_param(request, name):
    """Return a stripped query parameter, or ``None`` when blank."""
    value = request.query_params.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def int_param(request, name, default):
    try:
        return int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        return default


def bool_param(request, name):
    return (request.query_params.get(name) or "").strip().lower() in TRUE_VALUES
