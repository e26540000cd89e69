"""Unit tests for environment-based configuration."""

import pytest

from whale_tracker.config import (
    AppConfig, ServerConfig, chain_list_validator, get_chain_config, get_launch_config,
    optional_float_validator, url_validator
)


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Cached getters must re-read the environment in every test."""
    get_chain_config.cache_clear()
    get_launch_config.cache_clear()
    yield
    get_chain_config.cache_clear()
    get_launch_config.cache_clear()


class TestChainConfig:
    """Test suite for get_chain_config."""

    def test_defaults(self, monkeypatch):
        # Setup
        for key in ("ETHEREUM_MIN_TRANSACTION_VALUE", "ETHEREUM_MAX_TRANSACTION_VALUE",
                    "ETHEREUM_WS_URL", "ETHEREUM_MIN_WHALE_BALANCE"):
            monkeypatch.delenv(key, raising=False)

        # Execute
        config = get_chain_config("ethereum")

        # Verify
        assert config.native_symbol == "ETH"
        assert config.decimals == 18
        assert config.min_transaction_value == 5.0
        assert config.max_transaction_value == 100.0
        assert config.min_whale_balance == 100.0
        assert config.is_evm
        assert not config.has_websocket

    def test_solana_defaults(self, monkeypatch):
        monkeypatch.delenv("SOLANA_MIN_WHALE_BALANCE", raising=False)
        monkeypatch.delenv("SOLANA_MAX_TRANSACTION_VALUE", raising=False)
        config = get_chain_config("solana")
        assert not config.is_evm
        assert config.min_whale_balance == 1000.0
        assert config.max_transaction_value is None

    def test_environment_overrides(self, monkeypatch):
        # Setup
        monkeypatch.setenv("BSC_MIN_TRANSACTION_VALUE", "75")
        monkeypatch.setenv("BSC_WS_URL", "wss://bsc.example.org/ws")
        monkeypatch.setenv("ETHEREUM_MAX_TRANSACTION_VALUE", "none")

        # Execute
        bsc = get_chain_config("bsc")
        ethereum = get_chain_config("ethereum")

        # Verify
        assert bsc.min_transaction_value == 75.0
        assert bsc.has_websocket
        assert ethereum.max_transaction_value is None

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv("BSC_MIN_TRANSACTION_VALUE", "-3")
        with pytest.raises(ValueError):
            get_chain_config("bsc")

    def test_unsupported_chain(self):
        with pytest.raises(ValueError):
            get_chain_config("tron")


class TestValidators:
    """Test suite for configuration validators."""

    def test_chain_list(self):
        assert chain_list_validator(" Ethereum, solana ,") == ["ethereum", "solana"]
        with pytest.raises(ValueError):
            chain_list_validator("ethereum,tron")

    def test_optional_float(self):
        assert optional_float_validator("off") is None
        assert optional_float_validator("12.5") == 12.5

    def test_url(self):
        assert url_validator("wss://mainnet.example.org/ws") == "wss://mainnet.example.org/ws"
        with pytest.raises(ValueError):
            url_validator("not a url")


class TestAppConfig:
    """Test suite for AppConfig."""

    def test_loads_enabled_chains(self):
        config = AppConfig(server=ServerConfig(chains=["solana"]))
        assert list(config.chains) == ["solana"]

    def test_launch_window_from_environment(self, monkeypatch):
        monkeypatch.setenv("LAUNCH_WINDOW_MINUTES", "45")
        assert get_launch_config().new_launch_threshold_minutes == 45.0

    def test_server_config_validation(self):
        with pytest.raises(ValueError):
            ServerConfig(environment="moon")
        assert ServerConfig(host="127.0.0.1", port=9000).bind_address == "127.0.0.1:9000"
