"""
Sona client.

Routes are reached by attribute chaining and called with one payload:

    async with Sona(api_key='sk_...', wallet=wallet_pubkey) as sona:
        intent = await sona.solend.deposit({'amount': 100})
        sig = await intent.confirm(sign_and_send)

`sona.solend.deposit(payload)` is POST {base_url}/solend/deposit. Whether the
call is sealed to the enclave is decided by the route's entry in /meta.

Attributes of the client itself (call, routes, sessions, registry, context,
headers, ...) shadow protocols of the same name; reach those with the
explicit form instead, e.g. `await sona.call('routes/list', payload)`.
"""

import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlparse

import httpx

from .dispatch import Dispatcher
from .errors import ConfigError, SonaError
from .http import DEFAULT_TIMEOUT_MS
from .log import set_debug
from .meta import RouteRegistry
from .session import SessionStore
from .types import CallContext, Session

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'https://api.sona.build'
DEFAULT_ORIGIN = 'https://app.sona.build'


def validate_config(
    base_url: Any = None,
    api_key: Any = None,
    wallet: Any = None,
    origin: Any = None,
    timeout: Any = None,
    headers: Any = None,
    debug: Any = None,
) -> None:
    if base_url is not None:
        if not isinstance(base_url, str):
            raise ConfigError('base_url must be a string')
        if not base_url.startswith(('http://', 'https://')):
            raise ConfigError('base_url must start with http:// or https://')
        if base_url.startswith('http://') and urlparse(base_url).hostname not in ('localhost', '127.0.0.1'):
            logger.warning('Using insecure HTTP connection. Use HTTPS in production.')

    for name, value in (('api_key', api_key), ('wallet', wallet), ('origin', origin)):
        if value is not None and not isinstance(value, str):
            raise ConfigError(f'{name} must be a string')

    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0):
        raise ConfigError('timeout must be a positive number')

    if debug is not None and not isinstance(debug, bool):
        raise ConfigError('debug must be a boolean')

    if headers is not None and not isinstance(headers, Mapping):
        raise ConfigError('headers must be a mapping')


def _env_flag(value: Optional[str]) -> Optional[bool]:
    if not value:
        return None
    return value.lower() in ('1', 'true', 'yes')


class RouteBuilder:
    """Accumulates attribute access into a route path; calling it runs the route."""

    def __init__(self, client: 'Sona', path: Sequence[str] = ()):
        self._client = client
        self._path = tuple(path)

    def __getattr__(self, name: str) -> 'RouteBuilder':
        if name.startswith('_'):
            raise AttributeError(name)
        return RouteBuilder(self._client, self._path + (name,))

    async def __call__(self, payload: Optional[Dict[str, Any]] = None) -> Any:
        if not self._path:
            raise TypeError('Sona: Cannot call client directly. Use sona.protocol.operation() instead.')
        return await self._client.call(self._path, payload)

    def __repr__(self) -> str:
        return f'<RouteBuilder {"/".join(self._path) or "/"}>'


class Sona:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        wallet: Optional[str] = None,
        origin: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        debug: Optional[bool] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        validate_config(base_url, api_key, wallet, origin, timeout, headers, debug)

        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/')
        self.api_key = api_key or None
        self.wallet = wallet or None
        self.origin = origin or DEFAULT_ORIGIN
        self.timeout = timeout if timeout is not None else DEFAULT_TIMEOUT_MS
        self.headers = dict(headers or {})

        if debug is not None:
            set_debug(debug)

        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else httpx.AsyncClient()
        self.sessions = SessionStore(self._http)
        self.registry = RouteRegistry(self._http)
        self.dispatcher = Dispatcher(self._http, self.sessions, self.registry)
        self.context = CallContext(
            base_url=self.base_url,
            origin=self.origin,
            timeout_ms=self.timeout,
            api_key=self.api_key,
            wallet=self.wallet,
            headers=self.headers,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> 'Sona':
        """Build a client from SONA_* environment variables; keyword arguments win."""
        timeout = os.getenv('SONA_TIMEOUT_MS')
        try:
            timeout_ms = float(timeout) if timeout else None
        except ValueError as e:
            raise ConfigError('SONA_TIMEOUT_MS must be a number') from e
        options: Dict[str, Any] = {
            'base_url': os.getenv('SONA_BASE_URL') or None,
            'api_key': os.getenv('SONA_API_KEY') or None,
            'wallet': os.getenv('SONA_WALLET') or None,
            'origin': os.getenv('SONA_ORIGIN') or None,
            'timeout': timeout_ms,
            'debug': _env_flag(os.getenv('SONA_DEBUG')),
        }
        options.update(overrides)
        return cls(**options)

    def __getattr__(self, name: str) -> RouteBuilder:
        if name.startswith('_'):
            raise AttributeError(name)
        return RouteBuilder(self, (name,))

    async def call(self, route: Union[str, Sequence[str]], payload: Optional[Dict[str, Any]] = None) -> Any:
        """Call a route by path; works for protocols shadowed by client attributes."""
        path: List[str] = [p for p in route.split('/') if p] if isinstance(route, str) else list(route)
        if not path:
            raise ValueError('route must name at least one path segment')
        return await self.dispatcher.call(self.context, path, payload)

    async def routes(self) -> List[str]:
        """Route keys this API key can call, e.g. ['solend/deposit']."""
        routes = await self.registry.routes(self.base_url, self.api_key, self.timeout)
        return sorted(key.lstrip('/') for key in routes)

    async def prefetch_session(self) -> Optional[Session]:
        try:
            return await self.sessions.get(self.base_url, self.api_key, self.timeout)
        except (SonaError, httpx.HTTPError) as e:
            logger.warning('Failed to prefetch session: %s', e)
            return None

    def clear_session_cache(self) -> None:
        self.sessions.invalidate()

    def clear_meta_cache(self) -> None:
        self.registry.invalidate()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> 'Sona':
        await self.prefetch_session()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
