"""
Route executors for plain and attested operations.

Both POST JSON to {base_url}/{route_key}. Attested routes seal an envelope to
the enclave's session key and return an unverified Intent; plain routes send
the payload as-is and return the decoded body. HTTP 404 is not an error on
either path: the operation is simply unavailable, so callers get None.
"""

import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .crypto import encrypt_for_enclave
from .envelope import build_attested_request_body, create_envelope, generate_request_id, with_wallet_context
from .errors import ApiError, AttestedApiError, StaleCiphertextError
from .http import build_headers, request_with_timeout
from .intent import Intent
from .session import SessionStore
from .types import CallContext, ServerMetrics, Session

logger = logging.getLogger(__name__)

STALE_CIPHERTEXT = 'stale ciphertext'

SERVER_CONTEXT_HEADER = 'X-Sona-Server-Context-Ms'
SERVER_ENCLAVE_HEADER = 'X-Sona-Server-Enclave-Ms'
SERVER_TOTAL_HEADER = 'X-Sona-Server-Total-Ms'


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def handle_404(route_key: str) -> None:
    logger.warning('Protocol %s not supported', route_key)
    return None


def is_stale_ciphertext(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    error = data.get('error')
    return isinstance(error, str) and STALE_CIPHERTEXT in error.lower()


def _header_ms(headers: httpx.Headers, name: str) -> float:
    try:
        return float(headers.get(name) or 0)
    except ValueError:
        return 0.0


def extract_server_metrics(res: httpx.Response) -> ServerMetrics:
    return ServerMetrics(
        context_ms=_header_ms(res.headers, SERVER_CONTEXT_HEADER),
        enclave_ms=_header_ms(res.headers, SERVER_ENCLAVE_HEADER),
        total_ms=_header_ms(res.headers, SERVER_TOTAL_HEADER),
    )


def process_attested_response(data: Any, session: Session) -> Intent:
    if is_stale_ciphertext(data):
        raise StaleCiphertextError()
    if not isinstance(data, dict):
        return Intent(data=data, integrity_pubkey_b64=session.integrity_pubkey_b64)
    return Intent.from_response(data, session)


async def execute_plain_route(
    http: httpx.AsyncClient,
    ctx: CallContext,
    route_key: str,
    payload: Optional[Dict[str, Any]],
    timings: Dict[str, float],
) -> Any:
    body = with_wallet_context(ctx, payload)

    start = time.perf_counter()
    res = await request_with_timeout(
        http, 'POST', f'{ctx.base_url}/{route_key}', ctx.timeout_ms,
        headers=build_headers(ctx, generate_request_id()),
        json=body,
    )
    timings['api'] = _elapsed_ms(start)

    if res.status_code == 404:
        return handle_404(route_key)
    if not res.is_success:
        raise ApiError(res.status_code)

    start = time.perf_counter()
    data = res.json()
    timings['parse'] = _elapsed_ms(start)
    return data


async def execute_attested_route(
    http: httpx.AsyncClient,
    sessions: SessionStore,
    ctx: CallContext,
    route_key: str,
    payload: Optional[Dict[str, Any]],
    timings: Dict[str, float],
) -> Optional[Intent]:
    start = time.perf_counter()
    session = await sessions.get(ctx.base_url, ctx.api_key, ctx.timeout_ms)
    timings['session'] = _elapsed_ms(start)

    envelope = create_envelope(ctx, payload)

    start = time.perf_counter()
    encrypted = encrypt_for_enclave(envelope, session.encryption_pubkey_b64)
    timings['encrypt'] = _elapsed_ms(start)

    body = build_attested_request_body(encrypted, payload)

    start = time.perf_counter()
    res = await request_with_timeout(
        http, 'POST', f'{ctx.base_url}/{route_key}', ctx.timeout_ms,
        headers=build_headers(ctx, generate_request_id()),
        json=body,
    )
    timings['api'] = _elapsed_ms(start)

    if res.status_code == 404:
        return handle_404(route_key)
    if not res.is_success:
        text = res.text
        try:
            stale = is_stale_ciphertext(json.loads(text))
        except ValueError:
            stale = STALE_CIPHERTEXT in text.lower()
        if stale:
            raise StaleCiphertextError(res.status_code)
        raise AttestedApiError(res.status_code, text)

    start = time.perf_counter()
    data = res.json()
    timings['parse'] = _elapsed_ms(start)

    server_metrics = extract_server_metrics(res)
    if server_metrics.total_ms > 0:
        timings['api_overhead_ms'] = round(timings['api'] - server_metrics.total_ms, 2)

    intent = process_attested_response(data, session)
    intent.timings = timings
    intent.server_metrics = server_metrics
    return intent
