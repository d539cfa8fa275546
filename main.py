#!/usr/bin/env python3
"""Entry point for the relay load test.

Optionally waits for a relay deposit or a performance contract deployment,
checks the relay balance, then relays a batch of performance test jobs and
waits for each to execute before the shared deadline block.
"""

import argparse
import asyncio
import logging
import sys


# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)

from web3.exceptions import TimeExhausted

from relay_loadtest.exceptions import RelayLoadTestError
from relay_loadtest.jobs import DEFAULT_JOB_COSTS, build_jobs, parse_job_costs
from relay_loadtest.load_test import RelayLoadTest


async def main() -> int:
    """Main entry point for the relay load test.

    Returns:
        Process exit code: 0 when every job confirmed, 1 otherwise
    """
    parser = argparse.ArgumentParser(
        description="Relay load test - submit signed meta-transactions and verify execution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  RPC_URL                 - Chain RPC endpoint (required)
  PRIVATE_KEY             - Key that signs relay transactions (required)
  RELAY_URL               - Relay submission API
  RELAY_CONTRACT_ADDRESS  - Relay contract emitting RelayExecuted
  RECEIPT_SIGNER_ADDRESS  - Address that signs relay receipts
  BALANCE_HOST / BALANCE_PORT - Relay balance endpoint
  MIN_DEADLINE_LEAD       - Blocks between submission and deadline (default: 610)
  POLLING_INTERVAL        - Log polling interval in seconds (default: 12)
  MAX_POLL_FAILURES       - Failed polls before pending jobs give up (default: 5)
"""
    )
    parser.add_argument(
        "--target",
        help="Performance test contract address (required unless --await-deployment is given)"
    )
    parser.add_argument(
        "--jobs",
        type=parse_job_costs,
        default=list(DEFAULT_JOB_COSTS),
        help="Comma separated hash round counts, one per job"
    )
    parser.add_argument(
        "--await-deposit",
        metavar="TX_HASH",
        help="Wait for this relay deposit transaction to be confirmed first"
    )
    parser.add_argument(
        "--await-deployment",
        metavar="TX_HASH",
        help="Wait for this performance contract deployment and use it as target"
    )
    parser.add_argument(
        "--check-balance",
        action="store_true",
        default=False,
        help="Query the relay balance endpoint before sending jobs"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level (default: INFO)"
    )
    args = parser.parse_args()

    setup_logging(args.log_level)

    if not args.target and not args.await_deployment:
        parser.error("either --target or --await-deployment is required")

    try:
        load_test = RelayLoadTest.from_env()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        if args.await_deposit:
            await load_test.await_deposit(args.await_deposit)

        if args.check_balance:
            await load_test.check_balance()

        target = args.target
        if args.await_deployment:
            target = await load_test.await_deployment(args.await_deployment)

        batch = await load_test.run(build_jobs(args.jobs), target)
    except ValueError as e:
        logger.error(f"Invalid load test setup: {e}")
        return 1
    except (RuntimeError, TimeExhausted, RelayLoadTestError) as e:
        logger.error(f"Load test aborted: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        return 1

    return 0 if batch.all_confirmed else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
