import time
import uuid
from typing import Any, Dict, Optional

from .types import CallContext


def generate_request_id() -> str:
    return str(uuid.uuid4())


def create_envelope(ctx: CallContext, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build the plaintext that is sealed for the enclave on attested routes.
    Fresh timestamp and request id on every call.
    """
    context: Dict[str, Any] = {'origin': ctx.origin}
    if ctx.wallet:
        context['wallet'] = ctx.wallet
    return {
        'envelope': {
            'issuedAt': int(time.time() * 1000),
            'requestId': generate_request_id(),
            'origin': ctx.origin,
        },
        'context': context,
        'params': payload if payload is not None else {},
    }


def build_attested_request_body(encrypted_b64: str, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    hint = payload if payload is not None else {}
    body: Dict[str, Any] = {
        'encrypted': encrypted_b64,
        'hint': hint,
    }
    # Only forwarded when the caller set it; false trims the attestation from the response.
    if 'includeAttestation' in hint:
        body['includeAttestation'] = hint['includeAttestation']
    return body


def with_wallet_context(ctx: CallContext, payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    body = dict(payload) if payload else {}
    if ctx.wallet and 'context' not in body:
        body['context'] = {'wallet': ctx.wallet}
    return body
