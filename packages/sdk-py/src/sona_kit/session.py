import logging
from typing import Optional

import httpx

from .errors import SessionFetchError
from .http import DEFAULT_TIMEOUT_MS, api_key_headers, request_with_timeout
from .log import key_prefix
from .types import Session

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Caches the enclave's encryption and integrity public keys.

    Enclave keys live until the enclave restarts, so the session is kept
    indefinitely once fetched. It is only dropped by invalidate(), which the
    dispatcher calls when the enclave reports a stale ciphertext.
    """

    def __init__(self, http: httpx.AsyncClient):
        self._http = http
        self._session: Optional[Session] = None

    @property
    def cached(self) -> Optional[Session]:
        return self._session

    async def get(self, base_url: str, api_key: Optional[str] = None, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> Session:
        if self._session is not None:
            logger.debug('Using cached session (persistent keys)')
            return self._session

        logger.debug('Fetching session from %s/session', base_url)
        res = await request_with_timeout(
            self._http, 'GET', f'{base_url}/session', timeout_ms,
            headers=api_key_headers(api_key),
        )
        if not res.is_success:
            logger.debug('Session fetch failed with status %d', res.status_code)
            raise SessionFetchError(res.status_code)

        try:
            data = res.json()
        except ValueError as e:
            raise SessionFetchError(res.status_code, 'response is not JSON') from e
        if not isinstance(data, dict):
            raise SessionFetchError(res.status_code, 'expected a JSON object')

        session = Session.from_json(data)
        self._session = session
        logger.debug(
            'Session fetched (encryption key %s, mode %s)',
            key_prefix(session.encryption_pubkey_b64), session.mode,
        )
        return session

    def invalidate(self) -> None:
        self._session = None
