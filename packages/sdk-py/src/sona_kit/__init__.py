import logging

from .types import CallContext, RouteInfo, ServerMetrics, Session
from .errors import (
    ApiError,
    AttestedApiError,
    ConfigError,
    EncryptionError,
    IntegrityVerificationError,
    MetaFetchError,
    RequestTimeoutError,
    SessionFetchError,
    SonaError,
    StaleCiphertextError,
)
from .crypto import encrypt_for_enclave, seal, verify_signature
from .intent import Intent
from .session import SessionStore
from .meta import RouteRegistry
from .dispatch import Dispatcher
from .client import Sona
from .log import set_debug

__version__ = '0.1.0'

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    'Sona',
    'Intent',
    'Dispatcher',
    'SessionStore',
    'RouteRegistry',
    'CallContext',
    'RouteInfo',
    'ServerMetrics',
    'Session',
    'seal',
    'encrypt_for_enclave',
    'verify_signature',
    'set_debug',
    'SonaError',
    'ConfigError',
    'SessionFetchError',
    'MetaFetchError',
    'RequestTimeoutError',
    'ApiError',
    'AttestedApiError',
    'StaleCiphertextError',
    'EncryptionError',
    'IntegrityVerificationError',
]
