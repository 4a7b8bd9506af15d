import asyncio
from typing import Any, Dict, Optional

import httpx

from .errors import RequestTimeoutError
from .types import CallContext

DEFAULT_TIMEOUT_MS = 30000


def build_headers(ctx: CallContext, request_id: Optional[str] = None) -> Dict[str, str]:
    headers = {'content-type': 'application/json'}
    if ctx.api_key:
        headers['x-api-key'] = ctx.api_key
    if request_id:
        headers['x-request-id'] = request_id
    headers.update(ctx.headers or {})
    return headers


def api_key_headers(api_key: Optional[str]) -> Dict[str, str]:
    return {'x-api-key': api_key} if api_key else {}


async def request_with_timeout(
    http: httpx.AsyncClient,
    method: str,
    url: str,
    timeout_ms: Optional[float] = DEFAULT_TIMEOUT_MS,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send one request under a hard deadline of timeout_ms.
    httpx's per-phase timeouts get the same bound so the client default
    never cuts the call short. Both surface as RequestTimeoutError.
    """
    if timeout_ms is None:
        timeout_ms = DEFAULT_TIMEOUT_MS
    seconds = timeout_ms / 1000
    try:
        return await asyncio.wait_for(http.request(method, url, timeout=seconds, **kwargs), seconds)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise RequestTimeoutError(timeout_ms) from e
