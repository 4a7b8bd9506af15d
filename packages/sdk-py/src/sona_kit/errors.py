from typing import Optional


class SonaError(Exception):
    """Base class for every error raised by the SDK."""


class ConfigError(SonaError, ValueError):
    pass


class SessionFetchError(SonaError):
    def __init__(self, status: int, reason: Optional[str] = None):
        super().__init__(f'Sona: /session failed {status}' + (f': {reason}' if reason else ''))
        self.status = status


class MetaFetchError(SonaError):
    def __init__(self, status: int, reason: Optional[str] = None):
        super().__init__(f'Sona: /meta failed {status}' + (f': {reason}' if reason else ''))
        self.status = status


class RequestTimeoutError(SonaError):
    def __init__(self, timeout_ms: float):
        super().__init__(f'Request timeout after {timeout_ms}ms')
        self.timeout_ms = timeout_ms


class ApiError(SonaError):
    def __init__(self, status: int, message: Optional[str] = None):
        super().__init__(message or f'Sona: API error {status}')
        self.status = status


class AttestedApiError(ApiError):
    def __init__(self, status: int, body: str = ''):
        super().__init__(status, f'Sona: Attested API error {status} {body}'.rstrip())
        self.body = body


class StaleCiphertextError(SonaError):
    """
    The enclave could not decrypt the request because its encryption key
    rotated after the session was cached. Consumed by the dispatcher, which
    drops the session and retries once.
    """

    def __init__(self, status: Optional[int] = None):
        super().__init__('stale ciphertext')
        self.status = status


class EncryptionError(SonaError):
    pass


class IntegrityVerificationError(SonaError):
    def __init__(self, message: str = 'Sona: integrity verification failed'):
        super().__init__(message)
