"""
Configuration Unit Tests

Tests environment variable parsing and logging setup.
"""

import logging
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_manager.config import (
    ChainConfig,
    Config,
    EVMConfig,
    LoggingConfig,
    ManagerConfig,
    UniswapConfig,
    setup_logging,
)


class TestEnvironmentParsing:
    """Tests that dataclass defaults read the environment at construction"""

    def test_manager_defaults(self, monkeypatch):
        for key in ("DEFAULT_VENUE", "REBALANCE_EXCHANGE_ROUTING", "STRICT_TOKEN_METADATA", "EVENT_HISTORY_SIZE"):
            monkeypatch.delenv(key, raising=False)
        manager = ManagerConfig()
        assert manager.default_venue == "uniswap"
        assert manager.rebalance_exchange_routing == "alternate"
        assert manager.strict_token_metadata is False
        assert manager.event_history_size == 1000

    def test_manager_overrides(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_VENUE", "pancakeswap")
        monkeypatch.setenv("REBALANCE_EXCHANGE_ROUTING", "same")
        monkeypatch.setenv("STRICT_TOKEN_METADATA", "yes")
        monkeypatch.setenv("MANAGER_OWNER_ADDRESS", "0x000000000000000000000000000000000000dEaD")
        manager = ManagerConfig()
        assert manager.default_venue == "pancakeswap"
        assert manager.rebalance_exchange_routing == "same"
        assert manager.strict_token_metadata is True
        assert manager.owner_address.endswith("dEaD")

    def test_int_and_float(self, monkeypatch):
        monkeypatch.setenv("EVM_CHAIN_ID", "56")
        monkeypatch.setenv("EVM_RPC_TIMEOUT", "12.5")
        chain = ChainConfig()
        assert chain.chain_id == 56
        assert chain.timeout_seconds == 12.5

    def test_invalid_number_falls_back(self, monkeypatch):
        monkeypatch.setenv("EVM_TX_DEADLINE_SECONDS", "soon")
        monkeypatch.setenv("UNISWAP_PRIORITY_FEE_GWEI", "cheap")
        assert EVMConfig().tx_deadline_seconds == 1200
        assert UniswapConfig().priority_fee_gwei == 0.1

    def test_bool_parsing(self, monkeypatch):
        monkeypatch.setenv("EVM_SNAPSHOT_ROLLBACK", "1")
        assert EVMConfig().snapshot_rollback is True
        monkeypatch.setenv("EVM_SNAPSHOT_ROLLBACK", "off")
        assert EVMConfig().snapshot_rollback is False

    def test_reload(self, monkeypatch):
        monkeypatch.setenv("EVM_RPC_URL", "http://localhost:8545")
        assert Config.reload().chain.rpc_url == "http://localhost:8545"


class TestLogging:
    """Tests for setup_logging"""

    def test_level_property(self):
        assert LoggingConfig(log_file="", log_level="debug").level == logging.DEBUG
        assert LoggingConfig(log_file="", log_level="nonsense").level == logging.INFO

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "nested" / "lp.log"
        logger = setup_logging(
            LoggingConfig(log_file=str(log_file), log_level="DEBUG", console_output=False),
            logger_name="lp_manager_test_file",
        )
        logger.info("hello")
        for handler in logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "hello" in log_file.read_text()
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    def test_handlers_replaced_on_repeat(self):
        cfg = LoggingConfig(log_file="", console_output=True)
        setup_logging(cfg, logger_name="lp_manager_test_repeat")
        logger = setup_logging(cfg, logger_name="lp_manager_test_repeat")
        assert len(logger.handlers) == 1
