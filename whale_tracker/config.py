"""Configuration module for the whale tracker server."""

# Standard library imports
import os
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

# Third-party library imports
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

SUPPORTED_CHAINS = ("ethereum", "bsc", "solana")


def get_env_var(key: str, default: Any = None, required: bool = False,
                validator: Optional[Callable[[str], Any]] = None) -> Any:
    """Get and validate environment variable.

    Args:
        key: Environment variable name
        default: Default value if not present
        required: If True, raises ValueError when not found
        validator: Optional validation function

    Returns:
        The environment variable value or default

    Raises:
        ValueError: If required and not found, or fails validation
    """
    value = os.environ.get(key)

    if value is None or value == "":
        if required:
            raise ValueError(f"Required environment variable '{key}' not found")
        return default

    if validator:
        try:
            return validator(value)
        except Exception as e:
            raise ValueError(f"Invalid value for environment variable '{key}': {str(e)}")

    return value


def bool_validator(value: str) -> bool:
    """Validate and convert string to boolean.

    Args:
        value: String value to convert

    Returns:
        Boolean value
    """
    return value.lower() in ("true", "1", "yes", "y", "on")


def int_validator(value: str) -> int:
    """Validate and convert string to integer.

    Args:
        value: String value to convert

    Returns:
        Integer value

    Raises:
        ValueError: If not a valid integer
    """
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid integer")


def float_validator(value: str) -> float:
    """Validate and convert string to a non-negative float.

    Args:
        value: String value to convert

    Returns:
        Float value

    Raises:
        ValueError: If not a valid number or negative
    """
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid number")
    if number < 0:
        raise ValueError(f"'{value}' must not be negative")
    return number


def optional_float_validator(value: str) -> Optional[float]:
    """Like float_validator, but "none"/"off" disables the setting."""
    if value.lower() in ("none", "off", "disabled"):
        return None
    return float_validator(value)


def url_validator(value: str) -> str:
    """Validate URL format.

    Accepts http(s) and ws(s) schemes.

    Args:
        value: URL to validate

    Returns:
        The validated URL

    Raises:
        ValueError: If not a valid URL format
    """
    url_pattern = re.compile(
        r'^(https?|wss?):\/\/'  # scheme
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+(?:[A-Z]{2,6}\.?|[A-Z0-9-]{2,}\.?)|'  # domain
        r'localhost|'  # localhost
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # or IPv4
        r'(?::\d+)?'  # optional port
        r'(?:/?|[/?]\S+)$', re.IGNORECASE)

    if not url_pattern.match(value):
        raise ValueError(f"'{value}' is not a valid URL")
    return value


def log_level_validator(value: str) -> str:
    """Validate log level.

    Args:
        value: Log level to validate

    Returns:
        The validated log level

    Raises:
        ValueError: If not a valid log level
    """
    valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    upper_value = value.upper()
    if upper_value not in valid_levels:
        raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
    return upper_value


def environment_validator(value: str) -> str:
    """Validate environment name.

    Args:
        value: Environment name to validate

    Returns:
        The validated environment name

    Raises:
        ValueError: If not a valid environment name
    """
    valid_environments = ("development", "testing", "staging", "production")
    if value.lower() not in valid_environments:
        raise ValueError(f"Environment must be one of: {', '.join(valid_environments)}")
    return value.lower()


def chain_list_validator(value: str) -> List[str]:
    """Validate a comma separated list of chain names."""
    chains = [chain.strip().lower() for chain in value.split(",") if chain.strip()]
    for chain in chains:
        if chain not in SUPPORTED_CHAINS:
            raise ValueError(f"Chain must be one of: {', '.join(SUPPORTED_CHAINS)}")
    return chains


@dataclass
class ChainConfig:
    """Configuration for a single chain poller."""

    name: str
    rpc_url: str
    native_symbol: str
    coingecko_id: str
    decimals: int
    min_transaction_value: float
    min_whale_balance: float
    default_price_usd: float
    ws_url: Optional[str] = None
    max_transaction_value: Optional[float] = None
    poll_interval: float = 12.0  # seconds
    timeout: int = 30  # seconds
    enabled: bool = True

    @property
    def is_evm(self) -> bool:
        """Whether the chain speaks the Ethereum JSON-RPC dialect."""
        return self.name != "solana"

    @property
    def has_websocket(self) -> bool:
        """Whether a push subscription endpoint is configured."""
        return bool(self.ws_url)


_CHAIN_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "ethereum": {
        "rpc_url": "https://eth.llamarpc.com",
        "native_symbol": "ETH",
        "coingecko_id": "ethereum",
        "decimals": 18,
        "min_transaction_value": 5.0,
        "max_transaction_value": 100.0,
        "min_whale_balance": 100.0,
        "default_price_usd": 3000.0,
        "poll_interval": 12.0,
    },
    "bsc": {
        "rpc_url": "https://bsc-dataseed.binance.org",
        "native_symbol": "BNB",
        "coingecko_id": "binancecoin",
        "decimals": 18,
        "min_transaction_value": 50.0,
        "max_transaction_value": None,
        "min_whale_balance": 100.0,
        "default_price_usd": 300.0,
        "poll_interval": 3.0,
    },
    "solana": {
        "rpc_url": "https://api.mainnet-beta.solana.com",
        "native_symbol": "SOL",
        "coingecko_id": "solana",
        "decimals": 9,
        "min_transaction_value": 50.0,
        "max_transaction_value": None,
        "min_whale_balance": 1000.0,
        "default_price_usd": 150.0,
        "poll_interval": 4.0,
    },
}


@lru_cache()
def get_chain_config(chain: str) -> ChainConfig:
    """Get configuration for one chain from environment variables.

    Variables are prefixed with the upper-case chain name, e.g.
    ``ETHEREUM_RPC_URL`` or ``BSC_MIN_TRANSACTION_VALUE``.

    Args:
        chain: Chain name (ethereum, bsc or solana)

    Returns:
        ChainConfig instance

    Raises:
        ValueError: If the chain is unknown or a variable fails validation
    """
    if chain not in _CHAIN_DEFAULTS:
        raise ValueError(f"Unsupported chain: {chain}")

    defaults = _CHAIN_DEFAULTS[chain]
    prefix = chain.upper()

    return ChainConfig(
        name=chain,
        rpc_url=get_env_var(f"{prefix}_RPC_URL", defaults["rpc_url"], validator=url_validator),
        ws_url=get_env_var(f"{prefix}_WS_URL", None, validator=url_validator),
        native_symbol=defaults["native_symbol"],
        coingecko_id=get_env_var(f"{prefix}_COINGECKO_ID", defaults["coingecko_id"]),
        decimals=defaults["decimals"],
        min_transaction_value=get_env_var(
            f"{prefix}_MIN_TRANSACTION_VALUE", defaults["min_transaction_value"],
            validator=float_validator),
        max_transaction_value=get_env_var(
            f"{prefix}_MAX_TRANSACTION_VALUE", defaults["max_transaction_value"],
            validator=optional_float_validator),
        min_whale_balance=get_env_var(
            f"{prefix}_MIN_WHALE_BALANCE", defaults["min_whale_balance"],
            validator=float_validator),
        default_price_usd=get_env_var(
            f"{prefix}_DEFAULT_PRICE_USD", defaults["default_price_usd"],
            validator=float_validator),
        poll_interval=get_env_var(
            f"{prefix}_POLL_INTERVAL", defaults["poll_interval"], validator=float_validator),
        timeout=get_env_var(f"{prefix}_TIMEOUT", 30, validator=int_validator),
        enabled=get_env_var(f"{prefix}_ENABLED", True, validator=bool_validator),
    )


@dataclass
class DetectionConfig:
    """Configuration shared by the whale detection engines."""

    batch_size: int = 10
    batch_delay: float = 1.0  # seconds between batches
    max_tracked_transactions: int = 1000
    max_block_transactions: int = 50
    price_refresh_interval: float = 30.0  # seconds
    breaker_max_errors: int = 10
    breaker_cooldown: float = 300.0  # seconds
    reconnect_delay: float = 3.0  # seconds


@lru_cache()
def get_detection_config() -> DetectionConfig:
    """Get detection configuration from environment variables.

    Returns:
        DetectionConfig instance
    """
    return DetectionConfig(
        batch_size=get_env_var("BATCH_SIZE", 10, validator=int_validator),
        batch_delay=get_env_var("BATCH_DELAY", 1.0, validator=float_validator),
        max_tracked_transactions=get_env_var("MAX_TRACKED_TRANSACTIONS", 1000, validator=int_validator),
        max_block_transactions=get_env_var("MAX_BLOCK_TRANSACTIONS", 50, validator=int_validator),
        price_refresh_interval=get_env_var("PRICE_REFRESH_INTERVAL", 30.0, validator=float_validator),
        breaker_max_errors=get_env_var("BREAKER_MAX_ERRORS", 10, validator=int_validator),
        breaker_cooldown=get_env_var("BREAKER_COOLDOWN", 300.0, validator=float_validator),
        reconnect_delay=get_env_var("RECONNECT_DELAY", 3.0, validator=float_validator),
    )


@dataclass
class MonitorConfig:
    """Configuration for post-transfer token acquisition monitoring."""

    poll_interval: float = 10.0  # seconds
    window: float = 3600.0  # seconds


@lru_cache()
def get_monitor_config() -> MonitorConfig:
    """Get monitor configuration from environment variables."""
    return MonitorConfig(
        poll_interval=get_env_var("MONITOR_POLL_INTERVAL", 10.0, validator=float_validator),
        window=get_env_var("MONITOR_WINDOW", 3600.0, validator=float_validator),
    )


@dataclass
class ScoringConfig:
    """Configuration for token risk scoring."""

    analysis_ttl: float = 600.0  # seconds
    max_alerts: int = 100
    small_trade_usd: float = 1_000.0
    medium_trade_usd: float = 10_000.0
    large_trade_usd: float = 100_000.0


@lru_cache()
def get_scoring_config() -> ScoringConfig:
    """Get scoring configuration from environment variables."""
    return ScoringConfig(
        analysis_ttl=get_env_var("ANALYSIS_TTL", 600.0, validator=float_validator),
        max_alerts=get_env_var("MAX_ALERTS", 100, validator=int_validator),
    )


@dataclass
class LaunchConfig:
    """Configuration for the new launch tracker."""

    polling_interval: float = 30.0  # seconds
    whale_monitoring_interval: float = 15.0  # seconds
    bonding_curve_interval: float = 20.0  # seconds
    cleanup_interval: float = 3600.0  # seconds
    tracked_token_max_age_hours: float = 24.0
    liquidity_threshold_usd: float = 5000.0
    buys_threshold_h1: float = 15.0
    whale_investment_threshold_usd: float = 5000.0
    whale_transaction_threshold_usd: float = 1000.0
    honeypot_risk_ratio: float = 50.0
    max_age_hours: float = 2.0
    new_launch_threshold_minutes: float = 120.0
    discovery_concurrency: int = 5
    discovery_pause: float = 0.3  # seconds
    target_chains: List[str] = field(default_factory=lambda: [
        "ethereum", "solana", "bsc", "base", "polygon"])
    target_quote_symbols: List[str] = field(default_factory=lambda: [
        "WETH", "WBNB", "SOL", "USDC", "USDT", "MATIC"])


@lru_cache()
def get_launch_config() -> LaunchConfig:
    """Get launch tracker configuration from environment variables."""
    return LaunchConfig(
        polling_interval=get_env_var("LAUNCH_POLLING_INTERVAL", 30.0, validator=float_validator),
        whale_monitoring_interval=get_env_var("LAUNCH_WHALE_INTERVAL", 15.0, validator=float_validator),
        bonding_curve_interval=get_env_var("LAUNCH_BONDING_CURVE_INTERVAL", 20.0, validator=float_validator),
        cleanup_interval=get_env_var("LAUNCH_CLEANUP_INTERVAL", 3600.0, validator=float_validator),
        tracked_token_max_age_hours=get_env_var("LAUNCH_TRACKED_MAX_AGE_HOURS", 24.0, validator=float_validator),
        liquidity_threshold_usd=get_env_var("LAUNCH_LIQUIDITY_THRESHOLD_USD", 5000.0, validator=float_validator),
        buys_threshold_h1=get_env_var("LAUNCH_BUYS_THRESHOLD_H1", 15.0, validator=float_validator),
        max_age_hours=get_env_var("LAUNCH_MAX_AGE_HOURS", 2.0, validator=float_validator),
        new_launch_threshold_minutes=get_env_var("LAUNCH_WINDOW_MINUTES", 120.0, validator=float_validator),
    )


@dataclass
class MarketDataConfig:
    """Configuration for third-party market data APIs."""

    etherscan_url: str = "https://api.etherscan.io/api"
    etherscan_api_key: Optional[str] = None
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    dexscreener_url: str = "https://api.dexscreener.com"
    request_timeout: float = 10.0  # seconds
    price_timeout: float = 8.0  # seconds
    backoff_attempts: int = 5
    backoff_base_delay: float = 0.5  # seconds
    backoff_jitter: float = 0.25  # seconds
    pair_cache_size: int = 500
    pair_cache_ttl: float = 15.0  # seconds


@lru_cache()
def get_market_data_config() -> MarketDataConfig:
    """Get market data configuration from environment variables."""
    return MarketDataConfig(
        etherscan_url=get_env_var("ETHERSCAN_API_URL", "https://api.etherscan.io/api", validator=url_validator),
        etherscan_api_key=get_env_var("ETHERSCAN_API_KEY"),
        coingecko_url=get_env_var("COINGECKO_API_URL", "https://api.coingecko.com/api/v3", validator=url_validator),
        dexscreener_url=get_env_var("DEXSCREENER_API_URL", "https://api.dexscreener.com", validator=url_validator),
        request_timeout=get_env_var("MARKET_REQUEST_TIMEOUT", 10.0, validator=float_validator),
        backoff_attempts=get_env_var("MARKET_BACKOFF_ATTEMPTS", 5, validator=int_validator),
        pair_cache_ttl=get_env_var("PAIR_CACHE_TTL", 15.0, validator=float_validator),
    )


@dataclass
class ServerConfig:
    """Configuration for the server."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    chains: List[str] = field(default_factory=lambda: list(SUPPORTED_CHAINS))

    @property
    def bind_address(self) -> str:
        """Get the bind address for the server.

        Returns:
            Formatted bind address
        """
        return f"{self.host}:{self.port}"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.environment not in ("development", "testing", "staging", "production"):
            raise ValueError(f"Invalid environment: {self.environment}")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log_level: {self.log_level}")


@lru_cache()
def get_server_config() -> ServerConfig:
    """Get server configuration from environment variables.

    Returns:
        ServerConfig instance

    Raises:
        ValueError: If environment variables fail validation
    """
    return ServerConfig(
        host=get_env_var("HOST", "0.0.0.0"),
        port=get_env_var("PORT", 8000, validator=int_validator),
        debug=get_env_var("DEBUG", False, validator=bool_validator),
        environment=get_env_var("ENVIRONMENT", "development", validator=environment_validator),
        log_level=get_env_var("LOG_LEVEL", "INFO", validator=log_level_validator),
        cors_origins=get_env_var("CORS_ORIGINS", ["*"], validator=lambda v: v.split(",")),
        chains=get_env_var("CHAINS", list(SUPPORTED_CHAINS), validator=chain_list_validator),
    )


@dataclass
class AppConfig:
    """Comprehensive application configuration."""

    server: ServerConfig = field(default_factory=get_server_config)
    detection: DetectionConfig = field(default_factory=get_detection_config)
    monitor: MonitorConfig = field(default_factory=get_monitor_config)
    scoring: ScoringConfig = field(default_factory=get_scoring_config)
    launch: LaunchConfig = field(default_factory=get_launch_config)
    market: MarketDataConfig = field(default_factory=get_market_data_config)
    chains: Dict[str, ChainConfig] = field(default_factory=dict)

    def __post_init__(self):
        """Load per-chain configuration for the enabled chains."""
        if not self.chains:
            for name in self.server.chains:
                chain_config = get_chain_config(name)
                if chain_config.enabled:
                    self.chains[name] = chain_config


def get_app_config() -> AppConfig:
    """Get the comprehensive application configuration."""
    return AppConfig()
