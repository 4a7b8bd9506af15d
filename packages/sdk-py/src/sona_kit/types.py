from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Session:
    encryption_pubkey_b64: str
    integrity_pubkey_b64: str
    mode: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'Session':
        # Older enclaves spell the integrity key with a capital K.
        integrity = data.get('integrityPubkeyB64') or data.get('integrityPubKeyB64') or ''
        return cls(
            encryption_pubkey_b64=data.get('encryptionPubKeyB64') or '',
            integrity_pubkey_b64=integrity,
            mode=data.get('mode'),
        )


@dataclass(frozen=True)
class RouteInfo:
    attested: bool = False


@dataclass
class CallContext:
    base_url: str
    origin: str
    timeout_ms: float = 30000
    api_key: Optional[str] = None
    wallet: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ServerMetrics:
    context_ms: float = 0.0
    enclave_ms: float = 0.0
    total_ms: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            'server_context_ms': self.context_ms,
            'server_enclave_ms': self.enclave_ms,
            'server_total_ms': self.total_ms,
        }
