import logging
import time
from typing import Any, Dict, Optional, Sequence

import httpx

from .errors import StaleCiphertextError
from .executors import execute_attested_route, execute_plain_route
from .intent import Intent
from .log import is_debug_enabled
from .meta import RouteRegistry
from .session import SessionStore
from .types import CallContext, ServerMetrics

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000


class Dispatcher:
    """
    Single entry point for route calls.

    Resolves the route through the registry, hands it to the plain or attested
    executor, and retries exactly once with a fresh session when the enclave
    reports a stale ciphertext. A second stale signal propagates.
    """

    def __init__(self, http: httpx.AsyncClient, sessions: SessionStore, registry: RouteRegistry):
        self.http = http
        self.sessions = sessions
        self.registry = registry

    async def call(self, ctx: CallContext, path: Sequence[str], payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            return await self._call_once(ctx, path, payload)
        except StaleCiphertextError:
            logger.debug('Stale ciphertext detected, clearing session cache and retrying')
            self.sessions.invalidate()
            return await self._call_once(ctx, path, payload)

    async def _call_once(self, ctx: CallContext, path: Sequence[str], payload: Optional[Dict[str, Any]]) -> Any:
        key = '/'.join(path)
        started = time.perf_counter()
        timings: Dict[str, float] = {}

        logger.debug('Starting %s request', key)
        route = await self.registry.resolve(ctx.base_url, ctx.api_key, ctx.timeout_ms, path)
        timings['meta'] = (time.perf_counter() - started) * 1000

        if route is None:
            logger.warning('Protocol %s not available for this API key', key.replace('/', '.'))
            return None

        logger.debug('Route type: %s', 'attested' if route.attested else 'plain')
        if route.attested:
            result = await execute_attested_route(self.http, self.sessions, ctx, key, payload, timings)
        else:
            result = await execute_plain_route(self.http, ctx, key, payload, timings)

        timings['total'] = (time.perf_counter() - started) * 1000
        server_metrics = result.server_metrics if isinstance(result, Intent) else ServerMetrics()
        log_performance_metrics(key, timings, server_metrics)
        return result


def log_performance_metrics(route: str, timings: Dict[str, float], server_metrics: ServerMetrics) -> None:
    total = timings.get('total', 0.0)
    if total > SLOW_REQUEST_MS:
        logger.warning('Slow request detected on %s (%dms)', route, round(total))
    if not is_debug_enabled():
        return

    metrics = {name: round(value, 2) for name, value in timings.items()}
    metrics.update(server_metrics.as_dict())
    logger.debug('Request %s completed in %dms %s', route, round(total), metrics)

    if total > 0:
        breakdown = {
            name: f'{value / total * 100:.1f}%'
            for name, value in timings.items()
            if name not in ('total', 'api_overhead_ms')
        }
        logger.debug('Client time breakdown %s', breakdown)

    if server_metrics.total_ms > 0:
        logger.debug(
            'Server time breakdown context=%.1f%% enclave=%.1f%%',
            server_metrics.context_ms / server_metrics.total_ms * 100,
            server_metrics.enclave_ms / server_metrics.total_ms * 100,
        )
