"""
Pytest fixtures for the Klever SDK tests.
"""
import time

import pytest

from klever_sdk import LedgerProvider, NetworkRegistry
from klever_sdk._rate_limited_log import reset_rate_limits

# Constants for testing
SENDER = "klv1fpwjz234gy8aaae3gx0e8q9f52vymzzn3z5q0s5h60pvktzx0n0qwvtux5"
RECEIVER = "klv1sjpwc9e8dmx7r9wjzkh76ug5vxgetfvwtczsquy4vhnzrj2jkfkqg3plnv"
VALIDATOR = "klv1rj8uef37nfa8ezndupnplvnmgpwg2z9z723vrp9sypytkh3caqdsf4xe5d"
CONTRACT = "klv1mt8yw657z6nk9002pccmwql8w90k0ac6340cjqkvm9e7lu0z2wjqudt69s"
TX_HASH = "a" * 64

TESTNET_API = "https://api.testnet.klever.org"
TESTNET_NODE = "https://node.testnet.klever.org"
MAINNET_API = "https://api.mainnet.klever.org"
MAINNET_NODE = "https://node.mainnet.klever.org"


# Make time.sleep instantaneous so retries and polling don't slow the suite down.
# The requested waits are recorded so tests can assert on backoff.
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(time, "sleep", lambda seconds, *_a, **_kw: sleeps.append(seconds))
    return sleeps


@pytest.fixture(autouse=True)
def _clean_state(monkeypatch):
    """Forget rate-limited messages and cached network records between tests."""
    for name in ("KLEVER_SDK_TIMEOUT", "KLEVER_SDK_RETRIES", "KLEVER_SDK_DEBUG",
                 "KLEVER_SDK_ALLOW_INSECURE"):
        monkeypatch.delenv(name, raising=False)
    reset_rate_limits()
    NetworkRegistry.reset_cache()
    yield
    reset_rate_limits()
    NetworkRegistry.reset_cache()


@pytest.fixture
def sleeps(_fast_sleep):
    return _fast_sleep


@pytest.fixture
def provider():
    """Testnet provider with a single retry so failure paths stay short"""
    p = LedgerProvider("testnet", retries=1)
    yield p
    p.close()


@pytest.fixture
def mainnet_provider():
    p = LedgerProvider("mainnet", retries=0)
    yield p
    p.close()


def tx_response(status="success", receipts=None, block_num=100, tx_hash=TX_HASH, **extra):
    """Shape of GET /v1.0/transaction/<hash> from the indexing API"""
    transaction = {
        "hash": tx_hash,
        "status": status,
        "resultCode": "Ok",
        "blockNum": block_num,
        "sender": SENDER,
        "nonce": 7,
        "receipts": receipts if receipts is not None else [],
        "contract": [],
    }
    transaction.update(extra)
    return {"data": {"transaction": transaction}, "error": "", "code": "successful"}
