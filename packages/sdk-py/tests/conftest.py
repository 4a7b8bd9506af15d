import json
from base64 import b64decode, b64encode
from typing import Any, Dict, List, Optional

import httpx
import pytest
from nacl.exceptions import CryptoError
from nacl.public import PrivateKey, SealedBox
from nacl.signing import SigningKey

from sona_kit.types import CallContext

BASE_URL = 'https://enclave.test'


def b64(data: bytes) -> str:
    return b64encode(data).decode('ascii')


class FakeEnclave:
    """
    In-process stand-in for the Sona API: serves /session and /meta, opens
    sealed requests with the real private key and signs its transactions.
    """

    def __init__(self, routes: Optional[Dict[str, Dict[str, Any]]] = None):
        self.encryption_key = PrivateKey.generate()
        self.signing_key = SigningKey.generate()
        self.routes = routes if routes is not None else {
            '/solend/deposit': {'attested': True},
            '/prices/quote': {'attested': False},
        }
        self.requests: List[httpx.Request] = []
        self.opened: List[Dict[str, Any]] = []
        self.stale_responses = 0
        self.stale_status = 200
        self.operation_status = 200
        self.operation_headers: Dict[str, str] = {}
        self.plain_response: Any = {'data': {'price': 42}}
        self.include_signature = True

    @property
    def session_json(self) -> Dict[str, Any]:
        return {
            'encryptionPubKeyB64': b64(bytes(self.encryption_key.public_key)),
            'integrityPubkeyB64': b64(bytes(self.signing_key.verify_key)),
            'mode': 'nitro',
        }

    def count(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)

    def rotate_encryption_key(self) -> None:
        self.encryption_key = PrivateKey.generate()

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == '/session':
            return httpx.Response(200, json=self.session_json)
        if path == '/meta':
            return httpx.Response(200, json={'routes': self.routes})
        if self.operation_status != 200:
            return httpx.Response(self.operation_status, text='upstream said no')

        info = self.routes.get(path)
        body = json.loads(request.content)
        if info is None or not info.get('attested'):
            return httpx.Response(200, json=self.plain_response)

        if self.stale_responses > 0:
            self.stale_responses -= 1
            return httpx.Response(self.stale_status, json={'error': 'stale ciphertext'})

        try:
            plaintext = SealedBox(self.encryption_key).decrypt(b64decode(body['encrypted']))
        except CryptoError:
            return httpx.Response(200, json={'error': 'stale ciphertext'})
        self.opened.append(json.loads(plaintext))

        transaction = b'serialized-transaction:' + path.encode()
        response: Dict[str, Any] = {
            'transaction': b64(transaction),
            'metadata': {'route': path},
            'data': {'ok': True},
        }
        if self.include_signature:
            sig = self.signing_key.sign(transaction).signature
            response['attestation'] = {'signature': b64(sig), 'pcrs': {'0': 'abc'}}
        return httpx.Response(200, json=response, headers=self.operation_headers)


@pytest.fixture
def enclave():
    return FakeEnclave()


@pytest.fixture
def http(enclave):
    return httpx.AsyncClient(transport=httpx.MockTransport(enclave.handle))


@pytest.fixture
def ctx():
    return CallContext(base_url=BASE_URL, origin='https://app.sona.build', timeout_ms=5000, api_key='test-key')
