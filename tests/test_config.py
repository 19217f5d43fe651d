"""Tests for ClientConfig construction and validation."""

import pytest

from crowdfund.config import DEFAULT_RPC_URL, ClientConfig
from crowdfund.errors import ConfigError, ErrorCode
from crowdfund.models import Commitment


class TestDefaults:
    def test_defaults(self) -> None:
        config = ClientConfig()
        assert config.rpc_url == DEFAULT_RPC_URL
        assert config.commitment is Commitment.PROCESSED
        assert config.program_id is None
        assert config.refresh_after_withdraw is False
        assert config.max_retries == 3


class TestFromDict:
    def test_valid(self) -> None:
        config = ClientConfig.from_dict(
            {
                "rpc_url": "http://localhost:8899",
                "commitment": "confirmed",
                "max_retries": 0,
                "refresh_after_withdraw": True,
            }
        )
        assert config.rpc_url == "http://localhost:8899"
        assert config.commitment is Commitment.CONFIRMED
        assert config.max_retries == 0
        assert config.refresh_after_withdraw is True

    def test_empty_is_defaults(self) -> None:
        assert ClientConfig.from_dict({}) == ClientConfig()

    def test_unknown_key(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ClientConfig.from_dict({"rpc": "http://localhost:8899"})
        assert exc_info.value.error_code is ErrorCode.CONFIG_INVALID

    def test_bad_url(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ClientConfig.from_dict({"rpc_url": "ws://localhost:8900"})
        assert exc_info.value.details["path"] == "rpc_url"

    def test_bad_commitment(self) -> None:
        with pytest.raises(ConfigError):
            ClientConfig.from_dict({"commitment": "max"})

    @pytest.mark.parametrize("retries", [-1, 11, 1.5])
    def test_bad_retries(self, retries: object) -> None:
        with pytest.raises(ConfigError):
            ClientConfig.from_dict({"max_retries": retries})

    def test_non_positive_timeout(self) -> None:
        with pytest.raises(ConfigError):
            ClientConfig.from_dict({"confirm_timeout_s": 0})


class TestFromEnv:
    def test_unset_is_defaults(self) -> None:
        assert ClientConfig.from_env({}) == ClientConfig()

    def test_reads_prefixed_variables(self) -> None:
        config = ClientConfig.from_env(
            {
                "CROWDFUND_RPC_URL": "http://127.0.0.1:8899",
                "CROWDFUND_COMMITMENT": "finalized",
                "CROWDFUND_MAX_RETRIES": "5",
                "CROWDFUND_POLL_INTERVAL_S": "0.25",
                "CROWDFUND_SKIP_PREFLIGHT": "yes",
                "CROWDFUND_REFRESH_AFTER_WITHDRAW": "0",
                "UNRELATED": "ignored",
            }
        )
        assert config.rpc_url == "http://127.0.0.1:8899"
        assert config.commitment is Commitment.FINALIZED
        assert config.max_retries == 5
        assert config.poll_interval_s == 0.25
        assert config.skip_preflight is True
        assert config.refresh_after_withdraw is False

    def test_bad_integer(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ClientConfig.from_env({"CROWDFUND_MAX_RETRIES": "many"})
        assert exc_info.value.details["field"] == "max_retries"

    def test_bad_boolean(self) -> None:
        with pytest.raises(ConfigError):
            ClientConfig.from_env({"CROWDFUND_SKIP_PREFLIGHT": "maybe"})

    def test_schema_applies(self) -> None:
        with pytest.raises(ConfigError):
            ClientConfig.from_env({"CROWDFUND_MAX_RETRIES": "50"})
