"""
Polling watcher for RelayExecuted events.

A single polling loop reads the relay contract's logs and hands each decoded
record to whichever await is waiting for its identifier. Awaits whose deadline
block has been reached without a match fail with ConfirmationTimeout, and
all of them fail with TransportError once the chain stays unreachable.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Any, Dict, Optional

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3
from web3.types import LogReceipt

from .exceptions import ConfirmationTimeout, TransportError
from .models import ConfirmationRecord, PendingJob
from .utils.chain_reader import ChainReader

RELAY_EXECUTED_SIGNATURE = "RelayExecuted(bytes32,bool,address,uint256,uint256)"
RELAY_EXECUTED_TOPIC = HexBytes(Web3.keccak(text=RELAY_EXECUTED_SIGNATURE))


def decode_relay_executed(log: LogReceipt) -> ConfirmationRecord:
    """
    Decode a RelayExecuted log entry.

    Both layouts are accepted: every argument in the data section, or the
    identifier and executor as indexed topics.

    Args:
        log: Raw log entry

    Returns:
        The decoded confirmation record

    Raises:
        ValueError: If the log is not a RelayExecuted event
        DecodingError: If the data section is malformed
    """
    topics = [HexBytes(topic) for topic in log["topics"]]
    if not topics or topics[0] != RELAY_EXECUTED_TOPIC:
        raise ValueError("Log is not a RelayExecuted event")

    data = HexBytes(log["data"])
    if len(topics) >= 3:
        identifier = topics[1]
        executor = Web3.to_checksum_address(topics[2][-20:])
        success, gas_used, gas_price = decode(["bool", "uint256", "uint256"], data)
    else:
        identifier, success, executor, gas_used, gas_price = decode(
            ["bytes32", "bool", "address", "uint256", "uint256"], data
        )

    match log.get("transactionHash"):
        case None:
            tx_hash = ""
        case str() as tx_hash:
            pass
        case tx_hash_bytes:
            tx_hash = Web3.to_hex(tx_hash_bytes)

    return ConfirmationRecord(
        identifier=HexBytes(identifier),
        success=bool(success),
        executor=Web3.to_checksum_address(executor),
        gas_used=gas_used,
        gas_price=gas_price,
        block_number=int(log.get("blockNumber", 0)),
        transaction_hash=tx_hash,
    )


class ConfirmationWatcher:
    """
    Multiplexes many confirmation awaits over one log polling loop.

    Use as an async context manager, or call start() and stop().
    """

    MAX_RECENT_RECORDS: int = 10_000

    def __init__(
        self,
        chain: ChainReader,
        relay_contract_address: str,
        polling_interval: float = 12,
        lookback_blocks: int = 10,
        max_poll_failures: int = 5,
    ) -> None:
        """
        Initialize the watcher.

        Args:
            chain: Chain reader used for height and log queries
            relay_contract_address: Relay contract emitting RelayExecuted
            polling_interval: Seconds between polls
            lookback_blocks: Blocks behind the start height to scan first
            max_poll_failures: Consecutive failed polls after which pending
                awaits fail with TransportError
        """
        self.chain = chain
        self.relay_contract_address = Web3.to_checksum_address(relay_contract_address)
        self.polling_interval = polling_interval
        self.lookback_blocks = lookback_blocks
        self.max_poll_failures = max_poll_failures
        self.consecutive_failures = 0

        self.pending: Dict[HexBytes, PendingJob] = {}
        # Records seen before anyone awaited them; consumed on first await
        self.recent_records: OrderedDict[HexBytes, ConfirmationRecord] = OrderedDict()
        # Identifiers already handed to an await; later duplicates are dropped
        self.consumed: OrderedDict[HexBytes, None] = OrderedDict()

        self.last_processed_block: Optional[int] = None
        self.is_running = False
        self._task: Optional[asyncio.Task] = None

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def __aenter__(self) -> "ConfirmationWatcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start the shared polling loop a few blocks behind the current height."""
        if self.is_running:
            self.logger.warning("Watcher already running")
            return

        current_block = await self.chain.get_block_number()
        # Next poll starts at current_block - lookback_blocks
        self.last_processed_block = max(-1, current_block - self.lookback_blocks - 1)
        self.is_running = True
        self._task = asyncio.create_task(self._poll_loop())
        self.logger.info(
            f"Watching RelayExecuted on {self.relay_contract_address} "
            f"from block {self.last_processed_block + 1} every {self.polling_interval}s"
        )

    async def _poll_loop(self) -> None:
        while self.is_running:
            try:
                await self.poll_once()
                await asyncio.sleep(self.polling_interval)
            except asyncio.CancelledError:
                self.logger.info("Polling cancelled")
                break

    async def poll_once(self) -> None:
        """Process logs up to the current height, then expire passed deadlines."""
        try:
            current_block = await self.chain.get_block_number()

            if self.last_processed_block is not None and current_block <= self.last_processed_block:
                self.consecutive_failures = 0
                return

            from_block = (
                self.last_processed_block + 1
                if self.last_processed_block is not None
                else current_block
            )
            logs = await self.chain.get_logs(
                self.relay_contract_address,
                [RELAY_EXECUTED_TOPIC],
                from_block,
                current_block,
            )
            if logs:
                self.logger.debug(
                    f"Found {len(logs)} RelayExecuted logs in blocks {from_block}-{current_block}"
                )
            for log in logs:
                self._dispatch(log)

            self.last_processed_block = current_block
            self.consecutive_failures = 0
            self._expire(current_block)

        except Exception as e:
            self.consecutive_failures += 1
            self.logger.error(
                f"Error polling for RelayExecuted events "
                f"({self.consecutive_failures}/{self.max_poll_failures}): {e}"
            )
            # Don't update last_processed_block on error
            if self.chain_unavailable:
                self._fail_pending(e)

    @property
    def chain_unavailable(self) -> bool:
        return self.consecutive_failures >= self.max_poll_failures

    def _fail_pending(self, cause: Exception) -> None:
        for identifier, pending in list(self.pending.items()):
            del self.pending[identifier]
            if not pending.future.done():
                pending.future.set_exception(
                    TransportError(
                        f"Chain unreachable for {self.consecutive_failures} polls while waiting for "
                        f"{Web3.to_hex(identifier)[:10]}...: {cause}"
                    )
                )

    def _dispatch(self, log: LogReceipt) -> None:
        try:
            record = decode_relay_executed(log)
        except (ValueError, KeyError, DecodingError) as e:
            self.logger.debug(f"Skipping undecodable log: {e}")
            return

        if record.identifier in self.consumed:
            return

        pending = self.pending.pop(record.identifier, None)
        if pending is not None:
            if not pending.future.done():
                self._track_consumed(record.identifier)
                self.logger.info(f"Found: {Web3.to_hex(record.identifier)} in block {record.block_number}")
                pending.future.set_result(record)
            return

        if record.identifier in self.recent_records:
            return
        if len(self.recent_records) >= self.MAX_RECENT_RECORDS:
            self.recent_records.popitem(last=False)
        self.recent_records[record.identifier] = record

    def _track_consumed(self, identifier: HexBytes) -> None:
        if len(self.consumed) >= self.MAX_RECENT_RECORDS:
            self.consumed.popitem(last=False)
        self.consumed[identifier] = None

    def _expire(self, height: int) -> None:
        for identifier, pending in list(self.pending.items()):
            if pending.deadline_block_number <= height:
                del self.pending[identifier]
                if not pending.future.done():
                    self.logger.warning(
                        f"Deadline {pending.deadline_block_number} passed for "
                        f"{Web3.to_hex(identifier)[:10]}..."
                    )
                    pending.future.set_exception(
                        ConfirmationTimeout(Web3.to_hex(identifier), pending.deadline_block_number, height)
                    )

    async def await_confirmation(self, identifier: bytes, deadline_block_number: int) -> ConfirmationRecord:
        """
        Wait for the RelayExecuted event of one identifier.

        Args:
            identifier: Relay transaction identifier
            deadline_block_number: Block by which the event must be observed

        Returns:
            The matching confirmation record

        Raises:
            ConfirmationTimeout: If the deadline block passes first
            TransportError: If the chain has been unreachable for too many polls
            asyncio.CancelledError: If the watcher is stopped while waiting
        """
        if not self.is_running:
            raise RuntimeError("Watcher is not running")

        identifier = HexBytes(identifier)
        record = self.recent_records.pop(identifier, None)
        if record is not None:
            self._track_consumed(identifier)
            return record

        if identifier in self.pending:
            raise ValueError(f"{Web3.to_hex(identifier)} is already being awaited")

        if self.chain_unavailable:
            raise TransportError(
                f"Chain unreachable for {self.consecutive_failures} polls, "
                f"cannot wait for {Web3.to_hex(identifier)[:10]}..."
            )

        if self.last_processed_block is not None and self.last_processed_block >= deadline_block_number:
            raise ConfirmationTimeout(Web3.to_hex(identifier), deadline_block_number, self.last_processed_block)

        future = asyncio.get_running_loop().create_future()
        pending = PendingJob(identifier, deadline_block_number, future)
        self.pending[identifier] = pending
        try:
            return await future
        finally:
            if self.pending.get(identifier) is pending:
                del self.pending[identifier]

    async def stop(self) -> None:
        """Stop polling and release every outstanding await."""
        self.logger.info(f"Stopping watcher with {len(self.pending)} pending awaits")
        self.is_running = False

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass  # Expected when cancelling
        self._task = None

        for pending in self.pending.values():
            if not pending.future.done():
                pending.future.cancel()
        self.pending.clear()

    def get_status(self) -> Dict[str, Any]:
        """
        Get current status of the watcher.

        Returns:
            Dictionary with status information
        """
        return {
            "is_running": self.is_running,
            "last_processed_block": self.last_processed_block,
            "relay_contract_address": self.relay_contract_address,
            "pending": len(self.pending),
            "consecutive_failures": self.consecutive_failures,
            "recent_records": len(self.recent_records),
        }
