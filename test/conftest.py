"""Shared fixtures for the relay load test suite."""

import pytest
from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

from relay_loadtest.config import ChainConfig, JobPolicyConfig, MonitoringConfig, RelayConfig
from relay_loadtest.confirmation_watcher import RELAY_EXECUTED_TOPIC

# Well-known development key (never funded on a public network)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = Web3.to_checksum_address("0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266")
RELAY_CONTRACT = Web3.to_checksum_address("0xe25ec6cb37b1a37d8383891bc5dfd627c6cd66c8")
TARGET_CONTRACT = Web3.to_checksum_address("0x15d34aaf54267db7d7c367839aaf71a00a2c6a65")
EXECUTOR = Web3.to_checksum_address("0x85bfe05492afc3d04ff3b2ca6771acf6f853d90d")


class FakeChainReader:
    """In-memory chain: a height that optionally advances on every read, plus a log list.

    With `fail_after_reads` set, every height read after that many raises, as does
    every read while `unavailable` is true.
    """

    def __init__(self, height: int = 1000, step: int = 0, fail_after_reads: int | None = None) -> None:
        self.height = height
        self.step = step
        self.fail_after_reads = fail_after_reads
        self.height_reads = 0
        self.unavailable = False
        self.logs: list[dict] = []
        self.log_queries: list[tuple[str, int, int]] = []
        self.fail_next_get_logs = False

    async def get_block_number(self) -> int:
        self.height_reads += 1
        if self.unavailable or (
            self.fail_after_reads is not None and self.height_reads > self.fail_after_reads
        ):
            raise ConnectionError("rpc unavailable")
        height = self.height
        self.height += self.step
        return height

    async def get_logs(self, address, topics, from_block, to_block):
        self.log_queries.append((address, from_block, to_block))
        if self.unavailable or self.fail_next_get_logs:
            self.fail_next_get_logs = False
            raise ConnectionError("rpc unavailable")
        return [
            log for log in self.logs
            if log["address"] == address and from_block <= log["blockNumber"] <= to_block
        ]


def make_relay_executed_log(
    identifier: bytes,
    block_number: int,
    success: bool = True,
    executor: str = EXECUTOR,
    gas_used: int = 21_000,
    gas_price: int = 1_000_000_000,
    indexed: bool = False,
    address: str = RELAY_CONTRACT,
) -> dict:
    """Build a raw RelayExecuted log entry."""
    if indexed:
        topics = [
            RELAY_EXECUTED_TOPIC,
            HexBytes(identifier),
            HexBytes(bytes(12) + bytes(HexBytes(executor))),
        ]
        data = encode(["bool", "uint256", "uint256"], [success, gas_used, gas_price])
    else:
        topics = [RELAY_EXECUTED_TOPIC]
        data = encode(
            ["bytes32", "bool", "address", "uint256", "uint256"],
            [bytes(identifier), success, executor, gas_used, gas_price],
        )
    return {
        "address": Web3.to_checksum_address(address),
        "topics": topics,
        "data": HexBytes(data),
        "blockNumber": block_number,
        "transactionHash": HexBytes(Web3.keccak(text=f"tx-{block_number}-{Web3.to_hex(identifier)}")),
        "logIndex": 0,
    }


@pytest.fixture
def fake_chain():
    """A chain at height 1000 that does not advance on its own."""
    return FakeChainReader(height=1000)


@pytest.fixture
def make_log():
    return make_relay_executed_log


@pytest.fixture
def relay_config():
    """Configuration with a short deadline lead and fast polling."""
    return RelayConfig(
        chain=ChainConfig(rpc_url="http://localhost:8545"),
        private_key=TEST_PRIVATE_KEY,
        jobs=JobPolicyConfig(min_deadline_lead=5),
        monitoring=MonitoringConfig(polling_interval=0.01, lookback_blocks=10),
    )
