"""
Pytest Configuration and Fixtures
"""

import os
import sys
from datetime import datetime, timezone

import pytest

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'src'))

from gateway.persistence import (  # noqa: E402
    AllowedFi,
    AllowedUser,
    AuthorizedTransaction,
    PersistenceDriver,
    ReceivedPayment,
    SentTransaction,
)

FIXED_TIME = datetime(2016, 3, 14, 9, 26, 53, 589000, tzinfo=timezone.utc)


@pytest.fixture
def database_url(tmp_path):
    """URL of a fresh SQLite database file."""
    return f"sqlite:///{tmp_path / 'gateway.db'}"


@pytest.fixture
def bare_driver(database_url):
    """Initialized driver with no migrations applied."""
    driver = PersistenceDriver()
    driver.init(database_url)
    yield driver
    driver.close()


@pytest.fixture
def driver(bare_driver):
    """Initialized driver with every component migrated."""
    bare_driver.migrate_up("compliance")
    bare_driver.migrate_up("gateway")
    return bare_driver


def make_allowed_fi():
    return AllowedFi(
        name="Bank A",
        domain="banka.com",
        public_key="GABCDEFGHIJKLMNOPQRSTUVWXYZ234567ABCDEFGHIJKLMNOPQRSTUV",
        allowed_at=FIXED_TIME,
    )


def make_allowed_user():
    return AllowedUser(
        fi_name="Bank A",
        fi_domain="banka.com",
        fi_public_key="GABCDEFGHIJKLMNOPQRSTUVWXYZ234567ABCDEFGHIJKLMNOPQRSTUV",
        user_id="u1",
        allowed_at=FIXED_TIME,
    )


def make_authorized_transaction():
    return AuthorizedTransaction(
        transaction_id="e8f1c5d6a0b7",
        memo="memo-hash-1",
        transaction_xdr="AAAAAGL8HQvQkbK2HA3WVjRrKmjX00fG8sLI7m0ERwJW/AX3AAAAZA==",
        authorized_at=FIXED_TIME,
        data='{"sender":"alice*banka.com"}',
    )


def make_sent_transaction():
    return SentTransaction(
        source="GBWJES3WOKK7PRLJKZVGIPVFGQSSGCRMY7H3GCZ7BLG6TTY2GDKW3JWR",
        envelope_xdr="AAAAAJbcZWH3z1sCxvgXlhPnuuAQPa+lZb3CvuPbxjdA8gXFAAAAZA==",
        submitted_at=FIXED_TIME,
    )


def make_received_payment(payment_id=None):
    return ReceivedPayment(
        id=payment_id,
        operation_id=str(payment_id or 0),
        paging_token=f"1234-{payment_id}",
        status="Success",
        processed_at=FIXED_TIME,
    )


@pytest.fixture
def allowed_fi():
    return make_allowed_fi()


@pytest.fixture
def allowed_user():
    return make_allowed_user()
