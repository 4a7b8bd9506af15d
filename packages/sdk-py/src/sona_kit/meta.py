import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from .errors import MetaFetchError
from .http import DEFAULT_TIMEOUT_MS, api_key_headers, request_with_timeout
from .types import RouteInfo

logger = logging.getLogger(__name__)


def route_key(path: Sequence[str]) -> str:
    """Registry key for a route path: ['solend', 'deposit'] -> '/solend/deposit'."""
    return '/' + '/'.join(path)


def parse_routes(meta: Any) -> Dict[str, RouteInfo]:
    """Raises ValueError when the /meta document is not the expected shape."""
    if not isinstance(meta, dict):
        raise ValueError('expected a JSON object')
    routes = meta.get('routes') or {}
    if not isinstance(routes, dict):
        raise ValueError('routes must be an object')

    parsed = {}
    for key, info in routes.items():
        if info is not None and not isinstance(info, dict):
            raise ValueError(f'route {key} must be an object')
        parsed[key] = RouteInfo(attested=bool((info or {}).get('attested', False)))
    return parsed


class RouteRegistry:
    """
    Caches /meta: which routes exist for this API key and whether each is
    attested. Same lifetime as the session: fetched once, replaced wholesale
    after invalidate().
    """

    def __init__(self, http: httpx.AsyncClient):
        self._http = http
        self._routes: Optional[Dict[str, RouteInfo]] = None

    async def routes(self, base_url: str, api_key: Optional[str] = None, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> Dict[str, RouteInfo]:
        if self._routes is not None:
            return self._routes

        res = await request_with_timeout(
            self._http, 'GET', f'{base_url}/meta', timeout_ms,
            headers=api_key_headers(api_key),
        )
        if not res.is_success:
            raise MetaFetchError(res.status_code)

        try:
            self._routes = parse_routes(res.json())
        except ValueError as e:
            raise MetaFetchError(res.status_code, str(e)) from e
        logger.debug('Loaded %d routes from /meta', len(self._routes))
        return self._routes

    async def resolve(
        self,
        base_url: str,
        api_key: Optional[str],
        timeout_ms: float,
        path: Sequence[str],
    ) -> Optional[RouteInfo]:
        routes = await self.routes(base_url, api_key, timeout_ms)
        return routes.get(route_key(path))

    def invalidate(self) -> None:
        self._routes = None
