"""
Signing of relay transaction identifiers.

The identifier's 32 raw bytes are signed as an EIP-191 personal message, which
is what the relay contract recovers the sender from.
"""

import logging

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3

from .exceptions import SigningError
from .models import SignedTransactionRequest, TransactionRequest
from .utils.relay_encoder import RelayEncoder

logger = logging.getLogger(__name__)

IDENTIFIER_LENGTH = 32


def _identifier_message(identifier: bytes):
    if len(identifier) != IDENTIFIER_LENGTH:
        raise SigningError(
            f"Identifier must be {IDENTIFIER_LENGTH} bytes, got {len(identifier)}"
        )
    return encode_defunct(primitive=bytes(identifier))


def sign(identifier: bytes, private_key: str | bytes | LocalAccount) -> HexBytes:
    """
    Sign an identifier with the given key.

    Args:
        identifier: 32 byte relay transaction identifier
        private_key: Hex private key, raw key bytes or a LocalAccount

    Returns:
        65 byte signature (r, s, v)

    Raises:
        SigningError: If the key is unusable or signing fails
    """
    message = _identifier_message(identifier)
    try:
        if isinstance(private_key, LocalAccount):
            signed = private_key.sign_message(message)
        else:
            signed = Account.sign_message(message, private_key=private_key)
    except (ValueError, TypeError) as e:
        raise SigningError(f"Could not sign identifier: {e}") from e
    return HexBytes(signed.signature)


def recover_signer(identifier: bytes, signature: bytes) -> str:
    """Recover the checksummed address that signed an identifier."""
    message = _identifier_message(identifier)
    try:
        return Account.recover_message(message, signature=bytes(signature))
    except Exception as e:
        raise SigningError(f"Could not recover signer: {e}") from e


def verify_signature(identifier: bytes, signature: bytes, address: str) -> bool:
    """Check that `signature` over `identifier` was produced by `address`."""
    try:
        return recover_signer(identifier, signature) == Web3.to_checksum_address(address)
    except SigningError:
        return False


class RelaySigner:
    """Signs relay transactions on behalf of a single local account."""

    def __init__(self, private_key: str | bytes) -> None:
        """
        Initialize the signer.

        Args:
            private_key: Private key of the account that sends the jobs

        Raises:
            SigningError: If the key cannot be loaded
        """
        try:
            self.account: LocalAccount = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise SigningError(f"Invalid private key: {e}") from e

    @property
    def address(self) -> str:
        return self.account.address

    def sign_request(self, request: TransactionRequest) -> SignedTransactionRequest:
        """
        Compute the identifier of a request and sign it.

        Raises:
            EncodingError: If the request cannot be encoded
            SigningError: If signing fails
        """
        identifier = RelayEncoder.compute_identifier(request)
        signature = sign(identifier, self.account)
        logger.debug(f"Signed relay tx {Web3.to_hex(identifier)[:10]}... as {self.address}")
        return SignedTransactionRequest(
            request=request,
            identifier=identifier,
            signature=signature,
        )
