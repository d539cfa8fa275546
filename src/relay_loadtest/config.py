#!/usr/bin/env python3
"""Configuration management for the relay load tester.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded from environment variables with defaults matching the
public any.sender deployment on Ropsten.
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_RELAY_CONTRACT_ADDRESS = "0xe25ec6cb37b1a37d8383891bc5dfd627c6cd66c8"
DEFAULT_RECEIPT_SIGNER_ADDRESS = "0xe41743ca34762b84004d3abe932443fc51d561d5"
DEFAULT_RELAY_URL = "https://y9g7myp1zl.execute-api.us-east-2.amazonaws.com/Stage"
DEFAULT_BALANCE_HOST = "18.188.185.156"
DEFAULT_BALANCE_PORT = 5399


def _checksummed(name: str, address: str) -> str:
    if not address:
        raise ValueError(f"{name} is required")
    if not Web3.is_address(address):
        raise ValueError(f"Invalid {name}: {address}")
    return Web3.to_checksum_address(address)


@dataclass(frozen=True, slots=True)
class ChainConfig:
    """Configuration for the chain the relay executes on.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint
    """

    rpc_url: str

    def __post_init__(self) -> None:
        """Validate chain configuration."""
        if not self.rpc_url:
            raise ValueError("RPC URL is required (RPC_URL)")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https', 'ws', 'wss'):
            raise ValueError(
                f"Invalid RPC URL scheme: {parsed.scheme}. "
                "Expected http, https, ws, or wss"
            )


@dataclass(frozen=True, slots=True)
class RelayServiceConfig:
    """Configuration for the relay service under test.

    Attributes:
        relay_url: Base URL of the relay submission API
        relay_contract_address: Relay contract that executes requests
        receipt_signer_address: Address that signs relay receipts
        balance_host: Host of the balance endpoint
        balance_port: Port of the balance endpoint
    """

    relay_url: str = DEFAULT_RELAY_URL
    relay_contract_address: str = DEFAULT_RELAY_CONTRACT_ADDRESS
    receipt_signer_address: str = DEFAULT_RECEIPT_SIGNER_ADDRESS
    balance_host: str = DEFAULT_BALANCE_HOST
    balance_port: int = DEFAULT_BALANCE_PORT

    def __post_init__(self) -> None:
        """Validate relay service configuration."""
        if urlparse(self.relay_url).scheme not in ('http', 'https'):
            raise ValueError(f"Invalid relay URL: {self.relay_url}")

        object.__setattr__(
            self, 'relay_contract_address',
            _checksummed("relay contract address", self.relay_contract_address)
        )
        object.__setattr__(
            self, 'receipt_signer_address',
            _checksummed("receipt signer address", self.receipt_signer_address)
        )

        if not self.balance_host:
            raise ValueError("Balance host is required (BALANCE_HOST)")
        if not 0 < self.balance_port < 65536:
            raise ValueError(f"Invalid balance port: {self.balance_port}")


@dataclass(frozen=True, slots=True)
class JobPolicyConfig:
    """How jobs are turned into relay transactions."""
    min_deadline_lead: int = 610  # blocks between submission and deadline
    refund_wei: int = 10_000_000_000  # 0.00000001 ether
    high_gas_threshold: int = 200  # jobs costing more get the high gas limit
    low_gas_limit: int = 250_000
    high_gas_limit: int = 3_000_000
    transport_retries: int = 0  # resubmissions after a TransportError

    def __post_init__(self) -> None:
        """Validate job policy configuration."""
        if self.min_deadline_lead <= 0:
            raise ValueError(f"Minimum deadline lead must be positive, got {self.min_deadline_lead}")
        if self.refund_wei < 0:
            raise ValueError(f"Refund must be non-negative, got {self.refund_wei}")
        if self.low_gas_limit <= 0 or self.high_gas_limit <= 0:
            raise ValueError("Gas limits must be positive")
        if self.high_gas_limit < self.low_gas_limit:
            raise ValueError(
                f"High gas limit ({self.high_gas_limit}) is below low gas limit ({self.low_gas_limit})"
            )
        if not 0 <= self.transport_retries <= 10:
            raise ValueError(f"Transport retries must be between 0 and 10, got {self.transport_retries}")

    def gas_limit_for(self, cost: int) -> int:
        """Two-tier gas policy: expensive jobs get the high limit."""
        return self.high_gas_limit if cost > self.high_gas_threshold else self.low_gas_limit


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for chain polling and confirmations."""
    polling_interval: float = 12  # seconds between log polls
    lookback_blocks: int = 10  # blocks behind the head to start watching
    request_timeout: float = 30  # HTTP request timeout in seconds
    deposit_confirmations: int = 100
    deployment_confirmations: int = 6
    max_poll_failures: int = 5  # consecutive failed polls before awaits give up

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")
        if self.polling_interval > 300:
            raise ValueError(f"Polling interval too long (max 300s), got {self.polling_interval}")

        if self.lookback_blocks < 0:
            raise ValueError(f"Lookback blocks must be non-negative, got {self.lookback_blocks}")
        if self.lookback_blocks > 1000:
            raise ValueError(f"Lookback blocks too high (max 1000), got {self.lookback_blocks}")

        if self.request_timeout <= 0:
            raise ValueError(f"Request timeout must be positive, got {self.request_timeout}")

        if self.deposit_confirmations < 1 or self.deployment_confirmations < 1:
            raise ValueError("Confirmation counts must be at least 1")

        if self.max_poll_failures < 1:
            raise ValueError(f"Max poll failures must be at least 1, got {self.max_poll_failures}")


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Main configuration for the relay load tester.

    Attributes:
        chain: Chain RPC settings
        private_key: Key of the account that signs the jobs
        relay: Relay service endpoints and addresses
        jobs: Gas, refund and deadline policy
        monitoring: Polling and confirmation settings
    """

    chain: ChainConfig
    private_key: str
    relay: RelayServiceConfig = field(default_factory=RelayServiceConfig)
    jobs: JobPolicyConfig = field(default_factory=JobPolicyConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def __post_init__(self) -> None:
        """Validate the private key format."""
        key = self.private_key or ""
        if key.startswith('0x'):
            key = key[2:]

        if len(key) != 64:
            raise ValueError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )

        try:
            int(key, 16)
        except ValueError:
            raise ValueError(
                "Invalid private key format. Must be hexadecimal"
            ) from None

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Load configuration from environment variables.

        Returns:
            RelayConfig instance with loaded values

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        rpc_url = os.environ.get("RPC_URL", "")
        if not rpc_url:
            raise ValueError(
                "RPC_URL environment variable is required. "
                "Example: https://ropsten.infura.io/v3/<project id>"
            )

        private_key = os.environ.get("PRIVATE_KEY", "")
        if not private_key:
            raise ValueError(
                "PRIVATE_KEY environment variable is required. "
                "This key signs every relay transaction."
            )

        relay_config = RelayServiceConfig(
            relay_url=os.environ.get("RELAY_URL", DEFAULT_RELAY_URL),
            relay_contract_address=os.environ.get("RELAY_CONTRACT_ADDRESS", DEFAULT_RELAY_CONTRACT_ADDRESS),
            receipt_signer_address=os.environ.get("RECEIPT_SIGNER_ADDRESS", DEFAULT_RECEIPT_SIGNER_ADDRESS),
            balance_host=os.environ.get("BALANCE_HOST", DEFAULT_BALANCE_HOST),
            balance_port=int(os.environ.get("BALANCE_PORT", str(DEFAULT_BALANCE_PORT))),
        )

        job_config = JobPolicyConfig(
            min_deadline_lead=int(os.environ.get("MIN_DEADLINE_LEAD", "610")),
            refund_wei=int(os.environ.get("REFUND_WEI", "10000000000")),
            transport_retries=int(os.environ.get("TRANSPORT_RETRIES", "0")),
        )

        monitoring_config = MonitoringConfig(
            polling_interval=float(os.environ.get("POLLING_INTERVAL", "12")),
            lookback_blocks=int(os.environ.get("LOOKBACK_BLOCKS", "10")),
            request_timeout=float(os.environ.get("REQUEST_TIMEOUT", "30")),
            deposit_confirmations=int(os.environ.get("DEPOSIT_CONFIRMATIONS", "100")),
            deployment_confirmations=int(os.environ.get("DEPLOYMENT_CONFIRMATIONS", "6")),
            max_poll_failures=int(os.environ.get("MAX_POLL_FAILURES", "5")),
        )

        return cls(
            chain=ChainConfig(rpc_url=rpc_url),
            private_key=private_key,
            relay=relay_config,
            jobs=job_config,
            monitoring=monitoring_config,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format (private key hidden)."""
        logger.info("=" * 60)
        logger.info("Relay Load Test Configuration")
        logger.info("=" * 60)

        logger.info("Chain:")
        logger.info(f"  RPC URL: {self.chain.rpc_url}")
        logger.info(f"  Private Key: {'[SET]' if self.private_key else '[NOT SET]'}")

        logger.info("Relay Service:")
        logger.info(f"  Relay URL: {self.relay.relay_url}")
        logger.info(f"  Relay Contract: {self.relay.relay_contract_address}")
        logger.info(f"  Receipt Signer: {self.relay.receipt_signer_address}")
        logger.info(f"  Balance Endpoint: {self.relay.balance_host}:{self.relay.balance_port}")

        logger.info("Job Policy:")
        logger.info(f"  Minimum Deadline Lead: {self.jobs.min_deadline_lead} blocks")
        logger.info(f"  Refund: {self.jobs.refund_wei} wei")
        logger.info(
            f"  Gas: {self.jobs.low_gas_limit} / {self.jobs.high_gas_limit} "
            f"(threshold {self.jobs.high_gas_threshold})"
        )
        logger.info(f"  Transport Retries: {self.jobs.transport_retries}")

        logger.info("Monitoring Settings:")
        logger.info(f"  Polling Interval: {self.monitoring.polling_interval} seconds")
        logger.info(f"  Lookback Blocks: {self.monitoring.lookback_blocks}")
        logger.info(f"  Request Timeout: {self.monitoring.request_timeout} seconds")
        logger.info(f"  Deposit Confirmations: {self.monitoring.deposit_confirmations}")
        logger.info(f"  Deployment Confirmations: {self.monitoring.deployment_confirmations}")
        logger.info(f"  Max Poll Failures: {self.monitoring.max_poll_failures}")

        logger.info("=" * 60)
