import json
import logging
from base64 import b64encode, b64decode
from typing import Any, Optional

from nacl.bindings import crypto_box_beforenm
from nacl.encoding import RawEncoder
from nacl.exceptions import BadSignatureError, CryptoError
from nacl.hash import blake2b
from nacl.public import PrivateKey
from nacl.secret import SecretBox
from nacl.signing import VerifyKey

from .errors import EncryptionError

logger = logging.getLogger(__name__)

PUBLIC_KEY_BYTES = 32
SEAL_NONCE_BYTES = 24
SEAL_OVERHEAD = PUBLIC_KEY_BYTES + SecretBox.MACBYTES


def b64_to_bytes(value: str) -> bytes:
    return b64decode(value, validate=True)


def bytes_to_b64(data: bytes) -> str:
    return b64encode(data).decode('ascii')


def seal_nonce(ephemeral_pk: bytes, recipient_pk: bytes) -> bytes:
    return blake2b(ephemeral_pk + recipient_pk, digest_size=SEAL_NONCE_BYTES, encoder=RawEncoder)


def seal(plaintext: bytes, recipient_public_key: bytes) -> bytes:
    """
    Anonymous sealed box, byte-compatible with libsodium crypto_box_seal.
    Returns ephemeral_pk(32) || mac(16) || ciphertext.
    """
    if not isinstance(recipient_public_key, (bytes, bytearray)) or len(recipient_public_key) != PUBLIC_KEY_BYTES:
        raise EncryptionError('Recipient public key must be 32 bytes')
    recipient_pk = bytes(recipient_public_key)

    ephemeral = PrivateKey.generate()
    ephemeral_pk = bytes(ephemeral.public_key)
    try:
        # X25519 then HSalsa20 with the "expand 32-byte k" constant and a zero block.
        key = crypto_box_beforenm(recipient_pk, bytes(ephemeral))
    except CryptoError as e:
        raise EncryptionError(f'Key agreement failed: {e}') from e

    nonce = seal_nonce(ephemeral_pk, recipient_pk)
    boxed = SecretBox(key).encrypt(plaintext, nonce).ciphertext
    return ephemeral_pk + boxed


def encode_payload(payload: Any) -> bytes:
    return json.dumps(payload, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def encrypt_for_enclave(payload: Any, session_pubkey_b64: str) -> str:
    """
    JSON-encode a payload and seal it to the enclave's session key.
    Returns base64 ciphertext.
    """
    msg = encode_payload(payload)
    logger.debug('Encrypting %d byte payload for enclave', len(msg))
    try:
        recipient_pk = b64_to_bytes(session_pubkey_b64)
    except (ValueError, TypeError) as e:
        raise EncryptionError('Session public key is not valid base64') from e

    ct_b64 = bytes_to_b64(seal(msg, recipient_pk))
    logger.debug('Encryption complete (ciphertext: %d bytes)', len(ct_b64))
    return ct_b64


def verify_signature(message_b64: Optional[str], signature_b64: Optional[str], public_key_b64: Optional[str]) -> bool:
    """
    Verify a base64 Ed25519 signature over a base64 message.
    Never raises; anything missing, malformed or forged yields False.
    """
    if not message_b64 or not signature_b64 or not public_key_b64:
        logger.debug('Verification skipped: missing message, signature or public key')
        return False
    try:
        msg = b64_to_bytes(message_b64)
        sig = b64_to_bytes(signature_b64)
        vk = VerifyKey(b64_to_bytes(public_key_b64))
        vk.verify(msg, sig)
        return True
    except (BadSignatureError, ValueError, TypeError) as e:
        logger.debug('Signature verification failed: %s', e)
        return False
