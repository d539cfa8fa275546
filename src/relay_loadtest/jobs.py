"""
Job payloads for the performance test contract.

Each job calls `test(uint256)` with a number of hash rounds; the round count
doubles as the job's declared cost for the gas policy.
"""

from typing import Iterable

from eth_abi import encode
from web3 import Web3

from .models import Job

PERFORMANCE_TEST_SIGNATURE = "test(uint256)"

# Mix of cheap and expensive jobs sent by a default run
DEFAULT_JOB_COSTS: tuple[int, ...] = (
    3001, 3002, 3003, 3004, 3005, 3006, 103, 1,
    3007, 3008, 201, 3, 2, 301, 400, 605,
    100, 4, 5, 6, 4009, 10, 20, 41,
    4000, 80, 30, 40, 202, 800, 900, 401,
)


def function_selector(signature: str) -> bytes:
    """First four bytes of the keccak hash of a function signature."""
    return bytes(Web3.keccak(text=signature)[:4])


def encode_test_call(rounds: int) -> bytes:
    """Calldata for `test(rounds)` on the performance test contract."""
    return function_selector(PERFORMANCE_TEST_SIGNATURE) + encode(["uint256"], [rounds])


def build_jobs(costs: Iterable[int]) -> list[Job]:
    """Turn hash round counts into performance test jobs."""
    return [Job(cost=cost, data=encode_test_call(cost)) for cost in costs]


def parse_job_costs(value: str) -> list[int]:
    """
    Parse a comma separated list of job costs.

    Raises:
        ValueError: If an entry is not a non-negative integer
    """
    costs = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        cost = int(part)
        if cost < 0:
            raise ValueError(f"Job cost must be non-negative, got {cost}")
        costs.append(cost)
    if not costs:
        raise ValueError("At least one job cost is required")
    return costs
