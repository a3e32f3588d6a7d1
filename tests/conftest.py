"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from core_ledger.config import LedgerConfig
from core_ledger.credentials import PBKDF2CredentialProvider
from core_ledger.ledger import Ledger


class ManualClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> ManualClock:
    """Mid-morning local time on a fixed day."""
    return ManualClock(datetime(2024, 3, 15, 10, 30).astimezone())


@pytest.fixture
def credentials() -> PBKDF2CredentialProvider:
    """Low work factor so tests stay fast."""
    return PBKDF2CredentialProvider(iterations=1000)


@pytest.fixture
def ledger_config() -> LedgerConfig:
    """Explicit policy values, independent of LEDGER_* environment variables."""
    return LedgerConfig(
        min_opening_deposit=Decimal("100.00"),
        min_balance_savings=Decimal("100.00"),
        min_balance_current=Decimal("0.00"),
        daily_withdrawal_limit=Decimal("50000.00"),
        account_number_base=1_000_000_000,
        admin_user="admin",
        admin_default_password="admin123",
        pbkdf2_iterations=1000,
    )


@pytest.fixture
def ledger(credentials, ledger_config, clock) -> Ledger:
    return Ledger(credentials, config=ledger_config, clock=clock)


@pytest.fixture
def open_ledger(credentials, ledger_config, clock) -> Ledger:
    """Ledger that accepts accounts opened with no money."""
    config = ledger_config.model_copy(update={"min_opening_deposit": Decimal("0.00")})
    return Ledger(credentials, config=config, clock=clock)
