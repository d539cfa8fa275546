"""
HTTP clients for the relay service.

RelayClient submits signed relay transactions; BalanceClient reads the
sender's deposit held by the relay. Neither client retries on its own.
"""

import json
import logging
from typing import Any

import httpx
from hexbytes import HexBytes
from web3 import Web3

from .exceptions import BalanceCheckFailure, RejectedByRelay, TransportError
from .models import SignedTransactionRequest, SubmissionReceipt
from .signer import verify_signature

logger = logging.getLogger(__name__)


def _decode_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except json.JSONDecodeError:
        return {"raw": response.text}
    return body if isinstance(body, dict) else {"data": body}


class RelayClient:
    """Submits signed relay transactions to the relay's HTTP API."""

    RELAY_PATH = "/relay"

    def __init__(
        self,
        relay_url: str,
        receipt_signer_address: str | None = None,
        request_timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the relay client.

        Args:
            relay_url: Base URL of the relay API
            receipt_signer_address: Address expected to sign relay receipts
            request_timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.relay_url = relay_url.rstrip("/")
        self.receipt_signer_address = (
            Web3.to_checksum_address(receipt_signer_address) if receipt_signer_address else None
        )
        self.request_timeout = request_timeout
        self.transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(transport=self.transport, timeout=self.request_timeout) as client:
            logger.debug(f"Posting to {self.relay_url + path}: {json.dumps(payload)}")
            try:
                return await client.post(self.relay_url + path, json=payload)
            except httpx.TransportError as e:
                raise TransportError(f"Relay request to {self.relay_url + path} failed: {e}") from e

    def _check_receipt_signature(self, signed: SignedTransactionRequest, body: dict[str, Any]) -> HexBytes | None:
        receipt_signature = body.get("receiptSignature")
        if not receipt_signature:
            return None

        signature = HexBytes(receipt_signature)
        if self.receipt_signer_address and not verify_signature(
            signed.identifier, signature, self.receipt_signer_address
        ):
            raise RejectedByRelay(
                f"Receipt for {Web3.to_hex(signed.identifier)[:10]}... "
                f"was not signed by {self.receipt_signer_address}",
                body=body,
            )
        return signature

    async def submit(self, signed: SignedTransactionRequest) -> SubmissionReceipt:
        """
        Submit a signed relay transaction once.

        Args:
            signed: Signed relay transaction

        Returns:
            Receipt returned by the relay

        Raises:
            RejectedByRelay: If the relay answers with a non-success status
            TransportError: If the relay cannot be reached
        """
        response = await self._post(self.RELAY_PATH, signed.to_wire())
        body = _decode_body(response)
        identifier_hex = Web3.to_hex(signed.identifier)

        if not response.is_success:
            logger.warning(
                f"Relay rejected {identifier_hex[:10]}... with HTTP {response.status_code}: {body}"
            )
            raise RejectedByRelay(
                f"Relay rejected {identifier_hex} with HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        receipt_signature = self._check_receipt_signature(signed, body)
        logger.info(f"Relay accepted {identifier_hex[:10]}... (HTTP {response.status_code})")
        return SubmissionReceipt(
            identifier=signed.identifier,
            status_code=response.status_code,
            body=body,
            receipt_signature=receipt_signature,
        )


class BalanceClient:
    """Reads an account's balance from the relay's balance endpoint."""

    BALANCE_PATH = "/balance/"

    def __init__(
        self,
        host: str,
        port: int,
        request_timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = f"http://{host}:{port}"
        self.request_timeout = request_timeout
        self.transport = transport

    async def check_balance(self, address: str) -> dict[str, Any]:
        """
        Fetch the balance record for an address.

        Raises:
            BalanceCheckFailure: If the endpoint answers with a status above 200
            TransportError: If the endpoint cannot be reached
        """
        url = self.base_url + self.BALANCE_PATH + address
        async with httpx.AsyncClient(transport=self.transport, timeout=self.request_timeout) as client:
            try:
                response = await client.get(url)
            except httpx.TransportError as e:
                raise TransportError(f"Balance request to {url} failed: {e}") from e

        if response.status_code > 200:
            raise BalanceCheckFailure(address, response.status_code)

        balance = _decode_body(response)
        logger.info(f"Relay balance for {address}: {balance}")
        return balance
