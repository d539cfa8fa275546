"""
Data models for the relay load tester.

Requests, signed requests and confirmation records are frozen so they can be
shared between the dispatcher and the watcher without copying.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hexbytes import HexBytes
from web3 import Web3


@dataclass(frozen=True, slots=True)
class TransactionRequest:
    """An unsigned relay transaction.

    Attributes:
        sender: Address that signs the request and pays the relay
        target: Contract the relay calls
        data: Calldata executed on the target
        gas: Gas limit the relay must supply
        deadline_block_number: Block by which the relay must execute the call
        refund: Refund owed (in wei) if the relay misses the deadline
        relay_contract_address: Relay contract that executes the request
    """
    sender: str
    target: str
    data: bytes
    gas: int
    deadline_block_number: int
    refund: int
    relay_contract_address: str


@dataclass(frozen=True, slots=True)
class SignedTransactionRequest:
    """A request together with its identifier and the sender's signature."""
    request: TransactionRequest
    identifier: HexBytes
    signature: HexBytes

    def to_wire(self) -> dict[str, Any]:
        """Build the JSON body expected by the relay's submission endpoint."""
        request = self.request
        return {
            "from": request.sender,
            "to": request.target,
            "gas": request.gas,
            "data": Web3.to_hex(request.data),
            "deadlineBlockNumber": request.deadline_block_number,
            "refund": str(request.refund),
            "relayContractAddress": request.relay_contract_address,
            "signature": Web3.to_hex(self.signature),
        }


@dataclass(frozen=True, slots=True)
class SubmissionReceipt:
    """Acknowledgement returned by the relay for an accepted submission."""
    identifier: HexBytes
    status_code: int
    body: dict[str, Any]
    receipt_signature: HexBytes | None = None


@dataclass(frozen=True, slots=True)
class ConfirmationRecord:
    """A decoded RelayExecuted event.

    Attributes:
        identifier: Identifier of the executed relay transaction
        success: Whether the relayed call succeeded
        executor: Address reported by the event
        gas_used: Gas consumed by the relayed call
        gas_price: Gas price the relay paid
        block_number: Block containing the event
        transaction_hash: Transaction that emitted the event
    """
    identifier: HexBytes
    success: bool
    executor: str
    gas_used: int
    gas_price: int
    block_number: int
    transaction_hash: str

    @property
    def fee(self) -> int:
        """Wei spent by the relay on this execution."""
        return self.gas_used * self.gas_price

    def __str__(self) -> str:
        return (
            f"ConfirmationRecord(id={Web3.to_hex(self.identifier)[:10]}..., "
            f"success={self.success}, block={self.block_number})"
        )


@dataclass(slots=True)
class PendingJob:
    """An identifier waiting for its RelayExecuted event."""
    identifier: HexBytes
    deadline_block_number: int
    future: asyncio.Future


@dataclass(frozen=True, slots=True)
class Job:
    """One entry of a batch: a payload and its declared cost."""
    cost: int
    data: bytes


class JobStatus(Enum):
    """Final outcome of a single job."""
    CONFIRMED = "confirmed"
    TIMEOUT = "timeout"
    REJECTED = "rejected"
    TRANSPORT_ERROR = "transport_error"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class JobResult:
    """Outcome of one job in a batch."""
    index: int
    status: JobStatus
    gas: int
    identifier: HexBytes | None = None
    receipt: SubmissionReceipt | None = None
    record: ConfirmationRecord | None = None
    error: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.status is JobStatus.CONFIRMED


@dataclass
class BatchResult:
    """Per-job results for a batch that shares one deadline block."""
    deadline_block_number: int
    results: list[JobResult] = field(default_factory=list)

    def by_identifier(self) -> dict[str, JobResult]:
        """Map each submitted identifier (0x hex) to its result."""
        return {
            Web3.to_hex(result.identifier): result
            for result in self.results
            if result.identifier is not None
        }

    @property
    def confirmed(self) -> list[JobResult]:
        return [result for result in self.results if result.confirmed]

    @property
    def failed(self) -> list[JobResult]:
        return [result for result in self.results if not result.confirmed]

    @property
    def all_confirmed(self) -> bool:
        return bool(self.results) and not self.failed

    def summary(self) -> dict[str, int]:
        """Count results per status."""
        counts = {status.value: 0 for status in JobStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return counts
