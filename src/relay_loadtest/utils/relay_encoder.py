"""
Canonical encoding of relay transactions.

The relay, the relay contract and this client must all derive the same
identifier for a request, so the field order and ABI types below are fixed.
"""

import logging
from typing import Any, Union

from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

from ..exceptions import EncodingError
from ..models import TransactionRequest

logger = logging.getLogger(__name__)

# (wire name, ABI type) in the order they are encoded
RELAY_TX_ID_FIELDS: tuple[tuple[str, str], ...] = (
    ("to", "address"),
    ("from", "address"),
    ("data", "bytes"),
    ("deadlineBlockNumber", "uint256"),
    ("refund", "uint256"),
    ("gas", "uint256"),
    ("relayContractAddress", "address"),
)
RELAY_TX_ID_ABI_TYPES: tuple[str, ...] = tuple(abi_type for _, abi_type in RELAY_TX_ID_FIELDS)


class RelayEncoder:
    """Encodes relay transactions and derives their identifiers."""

    @staticmethod
    def to_bytes_safe(value: Union[HexBytes, bytes, str]) -> bytes:
        """
        Convert HexBytes, bytes or a hex string to bytes.

        Args:
            value: Value to convert

        Returns:
            Bytes representation
        """
        if isinstance(value, HexBytes):
            return bytes(value)
        elif isinstance(value, (bytes, bytearray)):
            return bytes(value)
        else:
            return Web3.to_bytes(hexstr=value)

    @staticmethod
    def _checked_address(name: str, value: Any) -> str:
        if not value or not isinstance(value, str) or not Web3.is_address(value):
            raise EncodingError(f"Field '{name}' must be an address, got {value!r}")
        return Web3.to_checksum_address(value)

    @staticmethod
    def _checked_uint(name: str, value: Any, minimum: int = 0) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncodingError(f"Field '{name}' must be an integer, got {value!r}")
        if value < minimum:
            raise EncodingError(f"Field '{name}' must be at least {minimum}, got {value}")
        if value >= 2**256:
            raise EncodingError(f"Field '{name}' does not fit in uint256")
        return value

    @staticmethod
    def _checked_data(value: Any) -> bytes:
        if not isinstance(value, (bytes, bytearray, str)):
            raise EncodingError(f"Field 'data' must be bytes, got {type(value).__name__}")
        try:
            data = RelayEncoder.to_bytes_safe(value)
        except ValueError as e:
            raise EncodingError(f"Field 'data' is not valid hex: {e}") from e
        if not data:
            raise EncodingError("Field 'data' must not be empty")
        return data

    @staticmethod
    def encode_request(request: TransactionRequest) -> bytes:
        """
        ABI encode a request in the order given by RELAY_TX_ID_FIELDS.

        Args:
            request: Unsigned relay transaction

        Returns:
            ABI encoded tuple

        Raises:
            EncodingError: If any field is missing or malformed
        """
        values = [
            RelayEncoder._checked_address("to", request.target),
            RelayEncoder._checked_address("from", request.sender),
            RelayEncoder._checked_data(request.data),
            RelayEncoder._checked_uint("deadlineBlockNumber", request.deadline_block_number, minimum=1),
            RelayEncoder._checked_uint("refund", request.refund),
            RelayEncoder._checked_uint("gas", request.gas, minimum=1),
            RelayEncoder._checked_address("relayContractAddress", request.relay_contract_address),
        ]
        return encode(list(RELAY_TX_ID_ABI_TYPES), values)

    @staticmethod
    def compute_identifier(request: TransactionRequest) -> HexBytes:
        """
        Derive the relay transaction identifier (keccak-256 of the encoding).

        Args:
            request: Unsigned relay transaction

        Returns:
            32 byte identifier
        """
        identifier = HexBytes(Web3.keccak(RelayEncoder.encode_request(request)))
        logger.debug(f"Relay tx id {Web3.to_hex(identifier)} for target {request.target}")
        return identifier


compute_identifier = RelayEncoder.compute_identifier
