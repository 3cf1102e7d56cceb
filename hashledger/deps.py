"""Dependency helpers for router modules."""

from decimal import Decimal

from starlette.requests import Request


def get_server(request: Request):
    return request.app.state.server


def dump(value):
    """Render Decimals as strings, recursively, for JSON responses."""
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, dict):
        return {k: dump(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [dump(v) for v in value]
    return value
