"""
Relay load test package.

Signs meta-transactions, submits them to a relay service and checks that each
one executes on-chain before its deadline block.
"""

from .config import RelayConfig
from .confirmation_watcher import ConfirmationWatcher
from .dispatcher import JobDispatcher
from .load_test import RelayLoadTest
from .models import BatchResult, ConfirmationRecord, Job, JobResult, JobStatus, TransactionRequest
from .relay_client import BalanceClient, RelayClient
from .signer import RelaySigner

__all__ = [
    "RelayConfig",
    "RelayLoadTest",
    "JobDispatcher",
    "ConfirmationWatcher",
    "RelayClient",
    "BalanceClient",
    "RelaySigner",
    "BatchResult",
    "ConfirmationRecord",
    "Job",
    "JobResult",
    "JobStatus",
    "TransactionRequest",
]
__version__ = "0.1.0"
