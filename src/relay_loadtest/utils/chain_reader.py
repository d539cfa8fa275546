"""
Read-only access to the chain the relay executes on.

Wraps an AsyncWeb3 HTTP connection so the watcher and dispatcher suspend on
RPC calls instead of blocking the event loop.
"""

import asyncio
import logging
from typing import Any, Sequence

from hexbytes import HexBytes
from web3 import AsyncWeb3, Web3
from web3.types import LogReceipt, TxReceipt


class ChainReader:
    """Block height, log and receipt queries over JSON-RPC."""

    def __init__(self, rpc_url: str, w3: AsyncWeb3 | None = None) -> None:
        """
        Initialize the chain reader.

        Args:
            rpc_url: HTTP RPC endpoint URL
            w3: Pre-built AsyncWeb3 instance (used by tests)
        """
        self.rpc_url = rpc_url
        self.w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url))
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def get_block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_logs(
        self,
        address: str,
        topics: Sequence[Any],
        from_block: int,
        to_block: int,
    ) -> list[LogReceipt]:
        """
        Fetch logs emitted by `address` matching `topics` in a block range.

        Args:
            address: Contract address
            topics: Topic filter (first entry is the event signature)
            from_block: First block, inclusive
            to_block: Last block, inclusive

        Returns:
            Raw log entries
        """
        return await self.w3.eth.get_logs({
            "address": Web3.to_checksum_address(address),
            "topics": list(topics),
            "fromBlock": from_block,
            "toBlock": to_block,
        })

    async def wait_for_confirmations(
        self,
        tx_hash: str | bytes,
        confirmations: int,
        poll_interval: float = 12,
        receipt_timeout: float = 600,
    ) -> TxReceipt:
        """
        Wait until a transaction is mined and buried under enough blocks.

        Args:
            tx_hash: Hash of the funding or deployment transaction
            confirmations: Blocks required, counting the inclusion block
            poll_interval: Seconds between height checks
            receipt_timeout: Seconds to wait for the receipt to appear

        Returns:
            The transaction receipt

        Raises:
            RuntimeError: If the transaction reverted
        """
        tx_hash = HexBytes(tx_hash)
        self.logger.info(
            f"Waiting for {confirmations} confirmations of {Web3.to_hex(tx_hash)}"
        )
        receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=receipt_timeout)
        if receipt["status"] != 1:
            raise RuntimeError(f"Transaction {Web3.to_hex(tx_hash)} reverted")

        mined_at = receipt["blockNumber"]
        while True:
            depth = await self.get_block_number() - mined_at + 1
            if depth >= confirmations:
                break
            self.logger.debug(f"{Web3.to_hex(tx_hash)[:10]}... has {depth}/{confirmations} confirmations")
            await asyncio.sleep(poll_interval)

        self.logger.info(f"{Web3.to_hex(tx_hash)} confirmed in block {mined_at}")
        return receipt

    async def wait_for_deployment(
        self,
        tx_hash: str | bytes,
        confirmations: int,
        poll_interval: float = 12,
    ) -> str:
        """Wait for a contract deployment and return the created address."""
        receipt = await self.wait_for_confirmations(tx_hash, confirmations, poll_interval)
        contract_address = receipt.get("contractAddress")
        if not contract_address:
            raise RuntimeError(f"Transaction {Web3.to_hex(HexBytes(tx_hash))} did not deploy a contract")
        self.logger.info(f"Deployed contract at {contract_address}")
        return Web3.to_checksum_address(contract_address)
