"""
Test suite for configuration loading
"""

from decimal import Decimal

import pytest

from core_ledger import config as config_module
from core_ledger.config import LedgerConfig, get_config, reload_config


ENV_NAMES = ("LEDGER_DAILY_WITHDRAWAL_LIMIT", "LEDGER_STATE_BACKEND", "LEDGER_API_PORT", "ledger_api_port")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    reload_config()


class TestLedgerConfig:

    def test_defaults(self, clean_env):
        config = LedgerConfig(_env_file=None)

        assert config.min_opening_deposit == Decimal("100.00")
        assert config.min_balance_savings == Decimal("100.00")
        assert config.min_balance_current == Decimal("0.00")
        assert config.daily_withdrawal_limit == Decimal("50000.00")
        assert config.account_number_base == 1_000_000_000
        assert config.admin_user == "admin"
        assert config.pbkdf2_iterations == 100_000
        assert config.state_backend == "json"

    def test_environment_override(self, clean_env):
        clean_env.setenv("LEDGER_DAILY_WITHDRAWAL_LIMIT", "1000")
        clean_env.setenv("ledger_api_port", "9000")

        config = LedgerConfig(_env_file=None)

        assert config.daily_withdrawal_limit == Decimal("1000")
        assert config.api_port == 9000

    def test_reload(self, clean_env):
        clean_env.setenv("LEDGER_STATE_BACKEND", "sqlite")

        reloaded = reload_config()

        assert reloaded.state_backend == "sqlite"
        assert get_config() is reloaded
        assert config_module.config is reloaded
