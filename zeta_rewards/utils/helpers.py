"""
Common utility functions for Zeta Rewards.

This module provides reusable helper functions for:
- Date/time formatting (ISO-8601 with UTC)
- Success response envelopes
- Pagination query parameters
"""

from datetime import timezone

from flask import jsonify, request, current_app


MAX_PAGE_SIZE = 50


def format_utc_iso(dt):
    """Return a UTC ISO-8601 string (with trailing Z) for a datetime or None."""
    if not dt:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def success(message=None, status_code=200, **payload):
    """Build the standard ``{"status": "success", ...}`` JSON response."""
    body = {"status": "success"}
    if message is not None:
        body["message"] = message
    body.update(payload)
    return jsonify(body), status_code


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def get_pagination(default_limit=None):
    """
    Read ``limit`` and ``offset`` from the query string.

    Invalid values fall back to the defaults; limit is capped at MAX_PAGE_SIZE.
    """
    if default_limit is None:
        default_limit = current_app.config.get('FEED_DEFAULT_LIMIT', 6)
    limit = _int_arg('limit', default_limit)
    offset = _int_arg('offset', 0)
    if limit <= 0:
        limit = default_limit
    limit = min(limit, MAX_PAGE_SIZE)
    offset = max(offset, 0)
    return limit, offset
