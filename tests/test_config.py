from __future__ import annotations

import pytest

from aa_pipeline.config import (
    DEFAULT_ARTIFACT_PATH,
    AccountConfig,
    DeploymentConfig,
    SubmissionConfig,
    load_config,
)
from aa_pipeline.constants import ENTRY_POINT_V06, get_network, is_test_network
from aa_pipeline.exceptions import ConfigurationError

PRIVATE_KEY = "0x" + "11" * 32


def test_load_config_maps_environment() -> None:
    config = load_config(
        {
            "PRIVATE_KEY": PRIVATE_KEY,
            "ALCHEMY_API_KEY": "alchemy-key",
            "NETWORK": "Base-Sepolia",
            "BASE_SEPOLIA_URL": "https://base.example/rpc/",
            "ETHERSCAN_API_KEY": "scan",
            "WEBHOOK_URLS": "https://a.example/hook, ,https://b.example/hook",
            "MIN_BALANCE_ETH": "0.005",
            "CONFIRMATION_TIMEOUT": "45",
        }
    )

    assert config.account.network == "base-sepolia"
    assert config.account.entry_point == ENTRY_POINT_V06
    assert config.account.resolved_rpc_url() == (
        "https://base-sepolia.g.alchemy.com/v2/alchemy-key"
    )
    assert config.submission.minimum_balance == 5 * 10**15
    assert config.submission.confirmation_timeout == 45.0
    assert config.deployment.resolved_rpc_url() == "https://base.example/rpc"
    assert config.deployment.artifact_path == DEFAULT_ARTIFACT_PATH
    assert config.explorer.api_key == "scan"
    assert config.notifier.webhook_urls == ("https://a.example/hook", "https://b.example/hook")


def test_load_config_defaults_without_environment() -> None:
    config = load_config({})

    assert config.account.private_key is None
    assert config.account.network == "sepolia"
    assert config.explorer.api_key is None
    assert config.notifier.webhook_urls == ()


def test_load_config_rejects_bad_numbers() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_config({"CONFIRMATION_TIMEOUT": "soon"})

    assert excinfo.value.field == "confirmation_timeout"


def test_load_config_rejects_bad_minimum_balance() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        load_config({"MIN_BALANCE_ETH": "-1"})

    assert excinfo.value.field == "minimum_balance"


def test_account_config_requires_private_key_first() -> None:
    with pytest.raises(ConfigurationError, match="PRIVATE_KEY is not set"):
        AccountConfig(private_key=None, api_key=None).validate()


def test_account_config_requires_api_key() -> None:
    with pytest.raises(ConfigurationError, match="ALCHEMY_API_KEY is not set"):
        AccountConfig(private_key=PRIVATE_KEY, api_key=None).validate()


def test_account_config_bundler_url_substitutes_api_key() -> None:
    config = AccountConfig(
        private_key=PRIVATE_KEY, api_key=None, bundler_url="http://localhost:4337/"
    )

    config.validate()
    assert config.resolved_rpc_url() == "http://localhost:4337"


def test_account_config_local_network_needs_bundler() -> None:
    config = AccountConfig(private_key=PRIVATE_KEY, api_key="key", network="hardhat")

    with pytest.raises(ConfigurationError) as excinfo:
        config.validate()

    assert excinfo.value.field == "bundler_url"


def test_unknown_network_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported network"):
        AccountConfig(private_key=PRIVATE_KEY, api_key="key", network="ropsten").validate()


def test_deployment_config_prefers_local_node() -> None:
    config = DeploymentConfig(private_key=PRIVATE_KEY, network="hardhat")

    config.validate()
    assert config.resolved_rpc_url() == "http://127.0.0.1:8545"


def test_deployment_config_remote_network_needs_api_key() -> None:
    with pytest.raises(ConfigurationError, match="ALCHEMY_API_KEY is not set"):
        DeploymentConfig(private_key=PRIVATE_KEY, network="sepolia").validate()


def test_submission_config_requires_positive_timeout() -> None:
    with pytest.raises(ConfigurationError):
        SubmissionConfig(minimum_balance=0, confirmation_timeout=0).validate()


def test_test_network_allow_list() -> None:
    assert is_test_network(get_network("sepolia").chain_id)
    assert is_test_network(get_network("holesky").chain_id)
    assert is_test_network(get_network("base-sepolia").chain_id)
    assert not is_test_network(get_network("mainnet").chain_id)
    assert not is_test_network(get_network("hardhat").chain_id)
