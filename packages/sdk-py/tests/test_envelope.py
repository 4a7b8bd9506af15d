import asyncio
import time
import uuid

import httpx
import pytest

from sona_kit.envelope import build_attested_request_body, create_envelope, with_wallet_context
from sona_kit.errors import RequestTimeoutError
from sona_kit.http import build_headers, request_with_timeout
from sona_kit.types import CallContext


@pytest.fixture
def wallet_ctx():
    return CallContext(base_url='http://localhost:8080', origin='https://app.sona.build', wallet='W1')


class TestCreateEnvelope:
    def test_fields(self, wallet_ctx):
        before = int(time.time() * 1000)
        env = create_envelope(wallet_ctx, {'amount': 100})

        assert before <= env['envelope']['issuedAt'] <= int(time.time() * 1000)
        assert uuid.UUID(env['envelope']['requestId']).version == 4
        assert env['envelope']['origin'] == 'https://app.sona.build'
        assert env['context'] == {'wallet': 'W1', 'origin': 'https://app.sona.build'}
        assert env['params'] == {'amount': 100}

    def test_unique_request_ids(self, wallet_ctx):
        ids = {create_envelope(wallet_ctx, {})['envelope']['requestId'] for _ in range(100)}
        assert len(ids) == 100

    def test_no_wallet_no_payload(self):
        ctx = CallContext(base_url='http://localhost', origin='o')
        env = create_envelope(ctx, None)
        assert env['context'] == {'origin': 'o'}
        assert env['params'] == {}


class TestAttestedRequestBody:
    def test_basic(self):
        assert build_attested_request_body('encrypted123', {'test': 'data'}) == {
            'encrypted': 'encrypted123',
            'hint': {'test': 'data'},
        }

    def test_include_attestation_forwarded(self):
        body = build_attested_request_body('encrypted123', {'test': 'data', 'includeAttestation': False})
        assert body['includeAttestation'] is False

    def test_include_attestation_omitted_when_unset(self):
        assert 'includeAttestation' not in build_attested_request_body('encrypted123', None)


class TestWalletContext:
    def test_merges_wallet(self, wallet_ctx):
        payload = {'amount': 100}
        assert with_wallet_context(wallet_ctx, payload) == {'amount': 100, 'context': {'wallet': 'W1'}}
        assert payload == {'amount': 100}

    def test_existing_context_wins(self, wallet_ctx):
        body = with_wallet_context(wallet_ctx, {'context': {'wallet': 'W2'}})
        assert body == {'context': {'wallet': 'W2'}}

    def test_no_wallet(self):
        ctx = CallContext(base_url='http://localhost', origin='o')
        assert with_wallet_context(ctx, None) == {}


class TestHeaders:
    def test_without_api_key(self):
        ctx = CallContext(base_url='http://localhost', origin='o')
        assert build_headers(ctx) == {'content-type': 'application/json'}

    def test_with_api_key_and_request_id(self):
        ctx = CallContext(base_url='http://localhost', origin='o', api_key='test-key')
        assert build_headers(ctx, 'rid-1') == {
            'content-type': 'application/json',
            'x-api-key': 'test-key',
            'x-request-id': 'rid-1',
        }

    def test_caller_headers_applied_last(self):
        ctx = CallContext(base_url='http://localhost', origin='o', headers={'x-trace': 't', 'x-request-id': 'mine'})
        headers = build_headers(ctx, 'rid-1')
        assert headers['x-trace'] == 't'
        assert headers['x-request-id'] == 'mine'


class TestRequestWithTimeout:
    @pytest.mark.asyncio
    async def test_deadline_exceeded(self):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with pytest.raises(RequestTimeoutError) as exc_info:
            await request_with_timeout(http, 'GET', 'http://localhost/slow', 20)
        assert exc_info.value.timeout_ms == 20
        assert 'Request timeout after 20ms' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_caller_timeout_reaches_httpx(self):
        seen = []

        def handler(request):
            seen.append(request.extensions['timeout'])
            return httpx.Response(200)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        await request_with_timeout(http, 'GET', 'http://localhost/ok', 30000)
        assert seen[0]['read'] == 30.0
        assert seen[0]['connect'] == 30.0

    @pytest.mark.asyncio
    async def test_slow_server_within_caller_timeout(self):
        # Answers after httpx's 5 s default; the 10 s caller timeout must win.
        async def slow(reader, writer):
            await reader.readuntil(b'\r\n\r\n')
            await asyncio.sleep(5.5)
            body = b'{"ok":true}'
            writer.write(
                b'HTTP/1.1 200 OK\r\ncontent-type: application/json\r\n'
                b'content-length: ' + str(len(body)).encode() + b'\r\nconnection: close\r\n\r\n' + body
            )
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(slow, '127.0.0.1', 0)
        port = server.sockets[0].getsockname()[1]
        try:
            async with httpx.AsyncClient() as http:
                res = await request_with_timeout(http, 'GET', f'http://127.0.0.1:{port}/meta', 10000)
            assert res.json() == {'ok': True}
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_other_transport_errors_propagate(self):
        def handler(request):
            raise httpx.ConnectError('refused', request=request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.ConnectError):
            await request_with_timeout(http, 'GET', 'http://localhost/down', 1000)
