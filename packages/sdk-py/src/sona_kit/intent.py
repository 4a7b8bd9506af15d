import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .crypto import verify_signature
from .errors import IntegrityVerificationError
from .types import ServerMetrics, Session

logger = logging.getLogger(__name__)


@dataclass
class Intent:
    """
    Attested enclave result that has not been trusted yet.

    The integrity key is copied from the session that was active when the
    request was sent, binding verification to that call. Use confirm() to hand
    the transaction to a signer; it refuses to do so unless verify() passes.
    """

    transaction: Optional[str] = None
    attestation: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    data: Any = None
    integrity_pubkey_b64: Optional[str] = None
    timings: Dict[str, float] = field(default_factory=dict)
    server_metrics: ServerMetrics = field(default_factory=ServerMetrics)

    @classmethod
    def from_response(cls, data: Dict[str, Any], session: Session) -> 'Intent':
        return cls(
            transaction=data.get('transaction'),
            attestation=data.get('attestation'),
            metadata=data.get('metadata'),
            data=data.get('data'),
            integrity_pubkey_b64=session.integrity_pubkey_b64,
        )

    def get_transaction(self) -> Optional[str]:
        return self.transaction

    def get_attestation(self) -> Optional[Dict[str, Any]]:
        return self.attestation

    def get_metadata(self) -> Optional[Dict[str, Any]]:
        return self.metadata

    def get_data(self) -> Any:
        return self.data

    @property
    def signature(self) -> Optional[str]:
        if isinstance(self.attestation, dict):
            return self.attestation.get('signature')
        return None

    def verify(self) -> bool:
        """Check the enclave's Ed25519 signature over the transaction."""
        if not self.transaction or not self.signature or not self.integrity_pubkey_b64:
            logger.warning('Intent missing required fields for verification')
            return False
        valid = verify_signature(self.transaction, self.signature, self.integrity_pubkey_b64)
        logger.debug('Signature verification %s', 'SUCCESS' if valid else 'FAILED')
        return valid

    async def confirm(self, send_fn: Callable[[List['Intent']], Any]) -> Any:
        """
        Verify, then pass [self] to send_fn and return its result.
        send_fn may be sync or async. It is never called if verification fails.
        """
        if not self.verify():
            raise IntegrityVerificationError()
        result = send_fn([self])
        if inspect.isawaitable(result):
            result = await result
        return result
