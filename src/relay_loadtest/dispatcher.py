"""
Job dispatcher for relay load tests.

Submits one relay transaction per job, in order, then waits for all of their
confirmations at once. Every job ends with its own JobResult; a rejected or
timed out job never stops the rest of the batch.
"""

import asyncio
import logging
from typing import Sequence

from web3 import Web3

from .config import RelayConfig
from .confirmation_watcher import ConfirmationWatcher
from .exceptions import ConfirmationTimeout, EncodingError, RejectedByRelay, SigningError, TransportError
from .models import (
    BatchResult,
    ConfirmationRecord,
    Job,
    JobResult,
    JobStatus,
    SubmissionReceipt,
    TransactionRequest,
)
from .relay_client import RelayClient
from .signer import RelaySigner
from .utils.chain_reader import ChainReader

logger = logging.getLogger(__name__)


class JobDispatcher:
    """Drives encode, sign, submit and confirm for a batch of jobs."""

    def __init__(
        self,
        config: RelayConfig,
        chain: ChainReader,
        signer: RelaySigner,
        relay_client: RelayClient,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            config: Relay load test configuration
            chain: Chain reader for heights and logs
            signer: Signer holding the sender's key
            relay_client: Client for the relay submission API
        """
        self.config = config
        self.chain = chain
        self.signer = signer
        self.relay_client = relay_client

    def build_request(self, job: Job, target_contract: str, deadline_block_number: int) -> TransactionRequest:
        """Build the unsigned relay transaction for one job."""
        return TransactionRequest(
            sender=self.signer.address,
            target=target_contract,
            data=job.data,
            gas=self.config.jobs.gas_limit_for(job.cost),
            deadline_block_number=deadline_block_number,
            refund=self.config.jobs.refund_wei,
            relay_contract_address=self.config.relay.relay_contract_address,
        )

    async def _submit_job(
        self,
        index: int,
        job: Job,
        target_contract: str,
        deadline_block_number: int,
    ) -> SubmissionReceipt | JobResult:
        """Sign and submit one job; return its receipt, or its final result on failure."""
        request = self.build_request(job, target_contract, deadline_block_number)

        try:
            signed = self.signer.sign_request(request)
        except (EncodingError, SigningError) as e:
            logger.error(f"Job {index}: could not build relay transaction: {e}")
            return JobResult(index=index, status=JobStatus.FAILED, gas=request.gas, error=str(e))

        attempts = 1 + self.config.jobs.transport_retries
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self.relay_client.submit(signed)
            except RejectedByRelay as e:
                logger.error(f"Job {index}: {e}")
                return JobResult(
                    index=index,
                    status=JobStatus.REJECTED,
                    gas=request.gas,
                    identifier=signed.identifier,
                    error=str(e),
                )
            except TransportError as e:
                if attempt == attempts:
                    logger.error(f"Job {index}: giving up after {attempts} attempts: {e}")
                    return JobResult(
                        index=index,
                        status=JobStatus.TRANSPORT_ERROR,
                        gas=request.gas,
                        identifier=signed.identifier,
                        error=str(e),
                    )
                logger.warning(f"Job {index}: transport error (attempt {attempt}/{attempts}), retrying: {e}")

    @staticmethod
    def _confirmation_result(
        index: int,
        gas: int,
        receipt: SubmissionReceipt,
        outcome: ConfirmationRecord | BaseException,
    ) -> JobResult:
        match outcome:
            case ConfirmationRecord():
                if not outcome.success:
                    logger.warning(f"Job {index}: relayed call executed but reverted")
                return JobResult(
                    index=index, status=JobStatus.CONFIRMED, gas=gas,
                    identifier=receipt.identifier, receipt=receipt, record=outcome,
                )
            case ConfirmationTimeout():
                status = JobStatus.TIMEOUT
            case TransportError():
                status = JobStatus.TRANSPORT_ERROR
            case asyncio.CancelledError():
                status = JobStatus.CANCELLED
            case _:
                status = JobStatus.FAILED

        return JobResult(
            index=index, status=status, gas=gas,
            identifier=receipt.identifier, receipt=receipt, error=str(outcome) or type(outcome).__name__,
        )

    async def run(
        self,
        jobs: Sequence[Job],
        target_contract: str,
        min_deadline_lead: int | None = None,
    ) -> BatchResult:
        """
        Relay a batch of jobs and wait for their confirmations.

        Args:
            jobs: Payloads to relay, submitted in this order
            target_contract: Contract every job calls
            min_deadline_lead: Blocks between now and the shared deadline
                (defaults to the configured minimum)

        Returns:
            Per-job results sharing one deadline block

        Raises:
            ValueError: If the target or deadline lead is invalid
        """
        policy_lead = self.config.jobs.min_deadline_lead
        lead = policy_lead if min_deadline_lead is None else min_deadline_lead
        if lead < policy_lead:
            raise ValueError(f"Deadline lead {lead} is below the minimum of {policy_lead} blocks")
        if not Web3.is_address(target_contract):
            raise ValueError(f"Invalid target contract address: {target_contract}")
        target_contract = Web3.to_checksum_address(target_contract)

        current_block = await self.chain.get_block_number()
        deadline = current_block + lead
        batch = BatchResult(deadline_block_number=deadline)
        logger.info(
            f"Dispatching {len(jobs)} jobs to {target_contract} "
            f"(block {current_block}, deadline {deadline})"
        )

        results: list[JobResult | None] = [None] * len(jobs)
        submitted: dict[int, SubmissionReceipt] = {}
        awaits: dict[int, asyncio.Task] = {}

        watcher = ConfirmationWatcher(
            chain=self.chain,
            relay_contract_address=self.config.relay.relay_contract_address,
            polling_interval=self.config.monitoring.polling_interval,
            lookback_blocks=self.config.monitoring.lookback_blocks,
            max_poll_failures=self.config.monitoring.max_poll_failures,
        )
        async with watcher:
            try:
                for index, job in enumerate(jobs):
                    outcome = await self._submit_job(index, job, target_contract, deadline)
                    if isinstance(outcome, JobResult):
                        results[index] = outcome
                        continue
                    submitted[index] = outcome
                    awaits[index] = asyncio.create_task(
                        watcher.await_confirmation(outcome.identifier, deadline)
                    )

                logger.info(f"Submitted {len(submitted)}/{len(jobs)} jobs, waiting for confirmations")
                outcomes = await asyncio.gather(*awaits.values(), return_exceptions=True)
            finally:
                for task in awaits.values():
                    if not task.done():
                        task.cancel()

        for index, outcome in zip(awaits.keys(), outcomes):
            gas = self.config.jobs.gas_limit_for(jobs[index].cost)
            results[index] = self._confirmation_result(index, gas, submitted[index], outcome)

        batch.results = [result for result in results if result is not None]
        logger.info(f"Batch finished: {batch.summary()}")
        return batch
