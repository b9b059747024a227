"""
Configuration management for the LP position manager

Loads settings from environment variables and .env file.
Includes logging configuration with file output and correlation ID support.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # lp_manager package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


# Load .env on module import
_load_env_file()


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class ChainConfig:
    """EVM chain connection settings"""
    rpc_url: str = field(default_factory=lambda: _get_env("EVM_RPC_URL", ""))
    chain_id: int = field(default_factory=lambda: _get_env_int("EVM_CHAIN_ID", 1))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("EVM_RPC_TIMEOUT", 30.0))


@dataclass
class UniswapConfig:
    """Uniswap V3 deployment overrides (empty = per-chain default from uniswap/api.py)"""
    position_manager_address: str = field(
        default_factory=lambda: _get_env("UNISWAP_POSITION_MANAGER_ADDRESS", "")
    )
    swap_router_address: str = field(default_factory=lambda: _get_env("UNISWAP_SWAP_ROUTER_ADDRESS", ""))
    factory_address: str = field(default_factory=lambda: _get_env("UNISWAP_FACTORY_ADDRESS", ""))
    # Priority fee (tip) in gwei - minimum viable value
    priority_fee_gwei: float = field(default_factory=lambda: _get_env_float("UNISWAP_PRIORITY_FEE_GWEI", 0.1))


@dataclass
class PancakeSwapConfig:
    """PancakeSwap V3 deployment overrides (empty = per-chain default from pancakeswap/api.py)"""
    position_manager_address: str = field(
        default_factory=lambda: _get_env("PANCAKESWAP_POSITION_MANAGER_ADDRESS", "")
    )
    swap_router_address: str = field(default_factory=lambda: _get_env("PANCAKESWAP_SWAP_ROUTER_ADDRESS", ""))
    factory_address: str = field(default_factory=lambda: _get_env("PANCAKESWAP_FACTORY_ADDRESS", ""))
    # Priority fee (tip) in gwei for ETH (BSC uses chain gas price)
    priority_fee_gwei: float = field(default_factory=lambda: _get_env_float("PANCAKESWAP_PRIORITY_FEE_GWEI", 0.1))


@dataclass
class EVMConfig:
    """EVM transaction settings shared by both venues"""
    # Transaction deadline in seconds (default: 20 minutes)
    tx_deadline_seconds: int = field(default_factory=lambda: _get_env_int("EVM_TX_DEADLINE_SECONDS", 1200))
    # Gas limits, set explicitly so a reverting call fails in preview instead of estimation
    lp_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_LP_GAS_LIMIT", 500_000))
    swap_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_SWAP_GAS_LIMIT", 300_000))
    approve_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_APPROVE_GAS_LIMIT", 100_000))
    transfer_gas_limit: int = field(default_factory=lambda: _get_env_int("EVM_TRANSFER_GAS_LIMIT", 150_000))
    receipt_timeout: int = field(default_factory=lambda: _get_env_int("EVM_RECEIPT_TIMEOUT", 120))
    # Use evm_snapshot/evm_revert for rollback (dev chains such as anvil or hardhat)
    snapshot_rollback: bool = field(default_factory=lambda: _get_env_bool("EVM_SNAPSHOT_ROLLBACK", False))


@dataclass
class ManagerConfig:
    """Position manager policy"""
    # Privileged actor for registry updates and token sweeps
    owner_address: str = field(default_factory=lambda: _get_env("MANAGER_OWNER_ADDRESS", ""))
    default_venue: str = field(default_factory=lambda: _get_env("DEFAULT_VENUE", "uniswap"))
    # "alternate" swaps on the other venue during rebalance, "same" on the home venue
    rebalance_exchange_routing: str = field(
        default_factory=lambda: _get_env("REBALANCE_EXCHANGE_ROUTING", "alternate")
    )
    # Raise MetadataUnavailable instead of substituting defaults
    strict_token_metadata: bool = field(default_factory=lambda: _get_env_bool("STRICT_TOKEN_METADATA", False))
    event_history_size: int = field(default_factory=lambda: _get_env_int("EVENT_HISTORY_SIZE", 1000))


@dataclass
class CoinGeckoConfig:
    """CoinGecko on-chain market data API"""
    base_url: str = field(default_factory=lambda: _get_env("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3"))
    api_key: Optional[str] = field(default_factory=lambda: _get_env("COINGECKO_API_KEY", None))
    network: str = field(default_factory=lambda: _get_env("COINGECKO_NETWORK", "eth"))
    timeout: float = field(default_factory=lambda: _get_env_float("COINGECKO_TIMEOUT", 30.0))


def _get_default_log_path() -> str:
    """Get default log file path under lp_manager/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"lp_manager_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with file output and correlation ID support.

    Environment variables:
        LOG_FILE: Path to log file (overrides default; empty disables file output)
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", _get_default_log_path()))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Loads all settings from environment variables and .env file.

    Usage:
        from lp_manager.config import config

        print(config.chain.rpc_url)
        print(config.manager.rebalance_exchange_routing)
    """
    chain: ChainConfig = field(default_factory=ChainConfig)
    uniswap: UniswapConfig = field(default_factory=UniswapConfig)
    pancakeswap: PancakeSwapConfig = field(default_factory=PancakeSwapConfig)
    evm: EVMConfig = field(default_factory=EVMConfig)
    manager: ManagerConfig = field(default_factory=ManagerConfig)
    coingecko: CoinGeckoConfig = field(default_factory=CoinGeckoConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def reload(cls) -> "Config":
        """Reload configuration from environment"""
        _load_env_file()
        return cls()


# Global config instance
config = Config()


def get_config() -> Config:
    """Get global configuration instance"""
    return config


def reload_config() -> Config:
    """Reload and return new configuration"""
    global config
    config = Config.reload()
    return config


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "lp_manager",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with optional rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration (uses global config if None)
        logger_name: Name of the logger to configure (default: lp_manager)

    Returns:
        Configured logger instance

    Example:
        from lp_manager.config import LoggingConfig, setup_logging
        logger = setup_logging(LoggingConfig(log_file="lp.log", log_level="DEBUG"))
    """
    if log_config is None:
        log_config = config.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close before removing to flush buffers and release file handles
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Child loggers inherit handlers from parent, only the level is set here
    for name in [
        f"{logger_name}.infra",
        f"{logger_name}.modules",
        f"{logger_name}.protocols",
    ]:
        logging.getLogger(name).setLevel(log_config.level)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger


def enable_file_logging(
    log_file: Optional[str] = None,
    level: str = "INFO",
    console: bool = True,
) -> logging.Logger:
    """
    Quick setup for file logging.

    Args:
        log_file: Path to log file (defaults to lp_manager/log/lp_manager_<ts>.log)
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        console: Also output to console

    Returns:
        Configured logger
    """
    if log_file is None:
        # Reuse the global config's log_file to keep a consistent timestamp
        log_file = config.logging.log_file

    log_config = LoggingConfig(
        log_file=log_file,
        log_level=level,
        console_output=console,
    )
    return setup_logging(log_config)
