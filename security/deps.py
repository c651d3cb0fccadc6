from __future__ import annotations

import os
import time
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException, Request

from dates.day_boundary import InvalidTimezone, resolve_timezone
from localdb.records import SqliteRecordStore


_RL_STORE: Dict[Tuple[str, str], Tuple[int, float]] = {}


def _admin_token() -> str | None:
    tok = os.getenv("ADMIN_TOKEN")
    if tok:
        return str(tok)
    return None


def require_auth(request: Request) -> None:
    """Require a bearer token for writes if ADMIN_TOKEN is set.

    Accepts either:
    - Authorization: Bearer <token>
    - X-Admin-Token: <token>
    """
    tok = _admin_token()
    if not tok:
        return  # Not enforced when no token configured (dev/tests)

    auth = request.headers.get("authorization")
    via_header = None
    if auth and auth.lower().startswith("bearer "):
        via_header = auth.split(" ", 1)[1].strip()
    candidate = via_header or request.headers.get("x-admin-token")
    if candidate != tok:
        raise HTTPException(status_code=401, detail="Unauthorized")


def require_csrf(request: Request) -> None:
    """If CSRF_TOKEN env set, require header X-CSRF-Token to match."""
    token = os.getenv("CSRF_TOKEN")
    if not token:
        return
    if request.headers.get("x-csrf-token") != token:
        raise HTTPException(status_code=403, detail="Invalid or missing CSRF token")


def _parse_rate(spec: str) -> Tuple[int, int]:
    # "30/min", "60/300s", "10/5m"
    n, w = spec.strip().lower().split("/", 1)
    if w.endswith("min"):
        window = int(w[:-3] or 1) * 60
    elif w.endswith("s"):
        window = int(w[:-1])
    elif w.endswith("m"):
        window = int(w[:-1]) * 60
    else:
        window = int(w)
    return int(n), window


def rate_limit(request: Request, *, scope: str, limit: int | None = None, window_s: int | None = None) -> None:
    """In-memory fixed-window rate limit per client IP and scope.

    Defaults come from ADMIN_RATE_LIMIT (e.g. "30/min" or "60/300s").
    """
    if limit is None or window_s is None:
        try:
            env_limit, env_window = _parse_rate(os.getenv("ADMIN_RATE_LIMIT") or "30/min")
        except ValueError:
            env_limit, env_window = 30, 60
        limit = env_limit if limit is None else limit
        window_s = env_window if window_s is None else window_s

    ip = request.client.host if request.client else "unknown"
    key = (ip, scope)
    now = time.time()
    count, window_start = _RL_STORE.get(key, (0, now))
    if now - window_start >= window_s:
        count = 0
        window_start = now
    count += 1
    _RL_STORE[key] = (count, window_start)
    if count > limit:
        raise HTTPException(status_code=429, detail="Rate limit exceeded")


def current_user_id(request: Request) -> str:
    """Caller identity from the X-User-Id header; the session layer in front sets it."""
    user_id = (request.headers.get("x-user-id") or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return user_id


def resolve_request_timezone(
    user_id: str,
    tz_param: Optional[str],
    store: Optional[SqliteRecordStore] = None,
) -> str:
    """Timezone for this request: ?tz= wins, then the user's stored zone.

    There is no server default; an unknown or missing zone is a 400.
    """
    name = tz_param
    if not name:
        name = (store or SqliteRecordStore()).get_user_timezone(user_id)
    if not name:
        raise HTTPException(status_code=400, detail="Timezone required: pass ?tz= or set the user's timezone")
    try:
        resolve_timezone(name)
    except InvalidTimezone as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return name


async def json_body(request: Request) -> Dict[str, Any]:
    """Request body as a JSON object; anything else is a 400."""
    try:
        payload = await request.json()
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid JSON body")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="JSON object expected")
    return payload


def json_bool(payload: Dict[str, Any], key: str, default: bool = False) -> bool:
    """A JSON boolean field; strings like "false" are rejected, not coerced."""
    value = payload.get(key, default)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise HTTPException(status_code=400, detail=f"'{key}' must be true or false")
    return value
