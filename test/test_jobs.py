"""Tests for performance test job payloads."""

import pytest
from eth_abi import decode

from relay_loadtest.jobs import (
    DEFAULT_JOB_COSTS,
    build_jobs,
    encode_test_call,
    function_selector,
    parse_job_costs,
)


class TestJobPayloads:
    """Tests for calldata construction."""

    def test_function_selector(self):
        assert function_selector("transfer(address,uint256)") == bytes.fromhex("a9059cbb")

    def test_encode_test_call(self):
        data = encode_test_call(250)

        assert len(data) == 4 + 32
        assert data[:4] == function_selector("test(uint256)")
        assert decode(["uint256"], data[4:]) == (250,)

    def test_build_jobs_keeps_order_and_cost(self):
        jobs = build_jobs([50, 250, 5])

        assert [job.cost for job in jobs] == [50, 250, 5]
        assert jobs[1].data == encode_test_call(250)

    def test_default_job_mix(self):
        """Test the default batch mixes both gas tiers."""
        assert len(DEFAULT_JOB_COSTS) == 32
        assert any(cost > 200 for cost in DEFAULT_JOB_COSTS)
        assert any(cost <= 200 for cost in DEFAULT_JOB_COSTS)


class TestParseJobCosts:
    """Tests for the --jobs argument parser."""

    def test_parse(self):
        assert parse_job_costs("50, 250,5") == [50, 250, 5]

    def test_trailing_comma(self):
        assert parse_job_costs("1,2,") == [1, 2]

    def test_negative_cost(self):
        with pytest.raises(ValueError, match="non-negative"):
            parse_job_costs("1,-2")

    def test_not_a_number(self):
        with pytest.raises(ValueError):
            parse_job_costs("1,two")

    def test_empty(self):
        with pytest.raises(ValueError, match="At least one job cost"):
            parse_job_costs(" , ")
