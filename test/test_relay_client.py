"""Unit tests for the relay submission and balance clients."""

import json

import httpx
import pytest
from eth_account import Account
from web3 import Web3

from relay_loadtest.exceptions import BalanceCheckFailure, RejectedByRelay, TransportError
from relay_loadtest.models import TransactionRequest
from relay_loadtest.relay_client import BalanceClient, RelayClient
from relay_loadtest.signer import RelaySigner, sign

from conftest import RELAY_CONTRACT, TARGET_CONTRACT, TEST_ADDRESS, TEST_PRIVATE_KEY

RELAY_URL = "https://relay.example.com/Stage"
RECEIPT_SIGNER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
RECEIPT_SIGNER = Account.from_key(RECEIPT_SIGNER_KEY).address


@pytest.fixture
def signed_request():
    signer = RelaySigner(TEST_PRIVATE_KEY)
    request = TransactionRequest(
        sender=signer.address,
        target=TARGET_CONTRACT,
        data=b"\x29\xe9\x9f\x07" + (250).to_bytes(32, "big"),
        gas=3_000_000,
        deadline_block_number=1610,
        refund=10_000_000_000,
        relay_contract_address=RELAY_CONTRACT,
    )
    return signer.sign_request(request)


def relay_client(handler, receipt_signer=None) -> RelayClient:
    return RelayClient(
        relay_url=RELAY_URL,
        receipt_signer_address=receipt_signer,
        transport=httpx.MockTransport(handler),
    )


class TestRelayClient:
    """Test suite for RelayClient."""

    @pytest.mark.asyncio
    async def test_submit_posts_wire_body(self, signed_request):
        """Test a successful submission and the request it sends."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "accepted"})

        receipt = await relay_client(handler).submit(signed_request)

        assert receipt.identifier == signed_request.identifier
        assert receipt.status_code == 200
        assert receipt.body == {"status": "accepted"}
        assert receipt.receipt_signature is None

        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert str(seen[0].url) == RELAY_URL + "/relay"
        assert json.loads(seen[0].content) == signed_request.to_wire()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 402, 409, 500])
    async def test_non_success_status_is_rejection(self, signed_request, status_code):
        """Test that every non-2xx answer raises RejectedByRelay."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json={"error": "deadline too soon"})

        with pytest.raises(RejectedByRelay) as exc_info:
            await relay_client(handler).submit(signed_request)

        assert exc_info.value.status_code == status_code
        assert exc_info.value.body == {"error": "deadline too soon"}

    @pytest.mark.asyncio
    async def test_non_json_error_body(self, signed_request):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(RejectedByRelay) as exc_info:
            await relay_client(handler).submit(signed_request)

        assert exc_info.value.body == {"raw": "Bad Gateway"}

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self, signed_request):
        """Test that connection failures raise TransportError and are not retried."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError, match="connection refused"):
            await relay_client(handler).submit(signed_request)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_receipt_signed_by_expected_signer(self, signed_request):
        """Test that a receipt signed by the configured signer is accepted."""
        receipt_signature = sign(signed_request.identifier, RECEIPT_SIGNER_KEY)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"receiptSignature": Web3.to_hex(receipt_signature)})

        receipt = await relay_client(handler, receipt_signer=RECEIPT_SIGNER).submit(signed_request)

        assert receipt.receipt_signature == receipt_signature

    @pytest.mark.asyncio
    async def test_receipt_signed_by_someone_else_is_rejected(self, signed_request):
        """Test that a receipt from an unexpected signer is a rejection."""
        receipt_signature = sign(signed_request.identifier, TEST_PRIVATE_KEY)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"receiptSignature": Web3.to_hex(receipt_signature)})

        with pytest.raises(RejectedByRelay, match="was not signed by"):
            await relay_client(handler, receipt_signer=RECEIPT_SIGNER).submit(signed_request)


class TestBalanceClient:
    """Test suite for BalanceClient."""

    @pytest.mark.asyncio
    async def test_check_balance(self):
        """Test the balance URL and the decoded body."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"address": TEST_ADDRESS, "balance": "7000000000000000000"})

        client = BalanceClient("18.188.185.156", 5399, transport=httpx.MockTransport(handler))
        balance = await client.check_balance(TEST_ADDRESS)

        assert balance["balance"] == "7000000000000000000"
        assert str(seen[0].url) == f"http://18.188.185.156:5399/balance/{TEST_ADDRESS}"
        assert seen[0].method == "GET"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [201, 204, 404, 500])
    async def test_status_above_200_fails(self, status_code):
        """Test that any status above 200 is a balance check failure."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json={})

        client = BalanceClient("localhost", 5399, transport=httpx.MockTransport(handler))

        with pytest.raises(BalanceCheckFailure) as exc_info:
            await client.check_balance(TEST_ADDRESS)

        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client = BalanceClient("localhost", 5399, transport=httpx.MockTransport(handler))

        with pytest.raises(TransportError):
            await client.check_balance(TEST_ADDRESS)
