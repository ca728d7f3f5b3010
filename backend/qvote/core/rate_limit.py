from __future__ import annotations

from typing import Set

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from qvote.core.settings import get_settings


def _trusted_proxies() -> Set[str]:
    raw = get_settings().trusted_proxies
    return {p.strip() for p in raw.split(",") if p.strip()}


def client_ip(request: Request) -> str:
    """
    Rate-limit key for a request.

    Forwarding headers are client-controlled, so they are only honoured when the peer is
    a trusted proxy (``TRUSTED_PROXIES``, comma-separated; ``*`` trusts every peer, which
    is only safe when the app is reachable solely through a proxy that overwrites them).
    """
    peer = get_remote_address(request)
    trusted = _trusted_proxies()
    if "*" not in trusted and peer not in trusted:
        return peer

    # Behind a proxy the first X-Forwarded-For hop is the voter.
    forwarded_for = request.headers.get("x-forwarded-for", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip", "")
    if real_ip:
        return real_ip
    return peer


def vote_rate_limit() -> str:
    return get_settings().vote_rate_limit


def event_create_rate_limit() -> str:
    return get_settings().event_create_rate_limit


limiter = Limiter(key_func=client_ip)

__all__ = ["client_ip", "vote_rate_limit", "event_create_rate_limit", "limiter"]
