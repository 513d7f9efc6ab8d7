"""Shared query parameter parsing utilities for framework adapters.

This module provides utilities for parsing and validating query parameters
that are common across different framework adapters (ASGI, WSGI).
"""

# Upper bound for the reporting window
MAX_DAYS = 3650


def _parse_days_param(params: dict[str, list[str]], default: int = 7) -> int:
    """Parse and validate the 'days' query parameter.

    Args:
        params: Parsed query string parameters (as returned by urllib.parse.parse_qs).
        default: Value used when the parameter is missing or invalid.

    Returns:
        Number of days, falling back to default for missing, non-integer,
        non-positive or out-of-range values.
    """
    values = params.get("days")
    if not values:
        return default
    try:
        days = int(values[0])
    except ValueError:
        return default
    if days < 1 or days > MAX_DAYS:
        return default
    return days
