"""
Tests for confirmation polling.
"""
import threading

import pytest

from klever_sdk.exceptions import NetworkError, ValidationError
from klever_sdk.models import ProgressStatus
from conftest import TESTNET_API, TESTNET_NODE, TX_HASH, tx_response

TX_URL = f"{TESTNET_API}/v1.0/transaction/{TX_HASH}?withResults=true"
OVERVIEW_URL = f"{TESTNET_NODE}/node/overview"

NOT_FOUND = {"status_code": 404, "text": "transaction not found"}


def overview(nonce):
    return {"json": {"data": {"overview": {"nonce": nonce}}}}


class TestWaitForTransaction:

    def test_returns_successful_transaction(self, provider, requests_mock, sleeps):
        requests_mock.get(TX_URL, [NOT_FOUND, {"json": tx_response(status="pending")}, {"json": tx_response()}])
        progress = []

        tx = provider.wait_for_transaction(TX_HASH, on_progress=progress.append)

        assert tx.hash == TX_HASH
        assert tx.is_successful
        assert [p.status for p in progress] == [ProgressStatus.PENDING, ProgressStatus.PENDING]
        assert progress[0].transaction is None
        assert progress[1].transaction.status == "pending"
        assert [p.attempt for p in progress] == [1, 2]
        assert sleeps == [3.0, 3.0]

    def test_failed_transaction_returned_immediately(self, provider, requests_mock, sleeps):
        route = requests_mock.get(TX_URL, json=tx_response(status="fail"))

        tx = provider.wait_for_transaction(TX_HASH, confirmations=5)

        assert tx.is_failed
        assert route.call_count == 1
        assert sleeps == []

    @pytest.mark.parametrize("status", ["failed", "invalid", "FAIL"])
    def test_other_failure_statuses(self, provider, requests_mock, status):
        requests_mock.get(TX_URL, json=tx_response(status=status))
        assert provider.wait_for_transaction(TX_HASH).status == status

    def test_timeout_after_max_attempts(self, provider, requests_mock, sleeps):
        route = requests_mock.get(TX_URL, **NOT_FOUND)
        progress = []

        result = provider.wait_for_transaction(TX_HASH, on_progress=progress.append)

        assert result is None
        assert route.call_count == 40
        assert len(sleeps) == 39
        assert [p.status for p in progress] == [ProgressStatus.PENDING] * 39 + [ProgressStatus.TIMEOUT]
        assert progress[-1].attempt == progress[-1].max_attempts == 40

    def test_custom_interval_and_attempts(self, provider, requests_mock, sleeps):
        route = requests_mock.get(TX_URL, json=tx_response(status="pending"))
        assert provider.wait_for_transaction(TX_HASH, poll_interval=0.5, max_attempts=3) is None
        assert route.call_count == 3
        assert sleeps == [0.5, 0.5]

    def test_waits_for_confirmations(self, provider, requests_mock, sleeps):
        requests_mock.get(TX_URL, json=tx_response(block_num=100))
        requests_mock.get(OVERVIEW_URL, [overview(100), overview(101), overview(102)])
        progress = []

        tx = provider.wait_for_transaction(TX_HASH, confirmations=3, on_progress=progress.append)

        assert tx.block_num == 100
        assert [p.status for p in progress] == [ProgressStatus.CONFIRMING] * 2
        assert [p.confirmations for p in progress] == [1, 2]
        assert all(p.required_confirmations == 3 for p in progress)

    def test_confirmation_ceiling_times_out(self, provider, requests_mock):
        requests_mock.get(TX_URL, json=tx_response(block_num=100))
        requests_mock.get(OVERVIEW_URL, **overview(100))
        progress = []

        result = provider.wait_for_transaction(
            TX_HASH, confirmations=2, on_progress=progress.append, max_attempts=4
        )

        assert result is None
        assert [p.status for p in progress] == [ProgressStatus.CONFIRMING] * 3 + [ProgressStatus.TIMEOUT]
        assert progress[-1].confirmations == 1

    def test_single_confirmation_skips_height_lookup(self, provider, requests_mock):
        requests_mock.get(TX_URL, json=tx_response())
        overview_route = requests_mock.get(OVERVIEW_URL, **overview(500))

        assert provider.wait_for_transaction(TX_HASH, confirmations=1) is not None
        assert overview_route.call_count == 0

    def test_polling_bypasses_cache(self, provider, requests_mock):
        route = requests_mock.get(TX_URL, json=tx_response())
        provider.get_transaction(TX_HASH)

        provider.wait_for_transaction(TX_HASH)

        assert route.call_count == 2

    def test_other_errors_propagate(self, provider, requests_mock):
        requests_mock.get(TX_URL, status_code=500, text="boom")
        with pytest.raises(NetworkError, match="HTTP 500"):
            provider.wait_for_transaction(TX_HASH)

    def test_cancel(self, provider, requests_mock):
        cancel = threading.Event()
        progress = []

        def on_progress(p):
            progress.append(p)
            cancel.set()

        requests_mock.get(TX_URL, **NOT_FOUND)
        result = provider.wait_for_transaction(TX_HASH, on_progress=on_progress, cancel=cancel)

        assert result is None
        assert [p.status for p in progress] == [ProgressStatus.PENDING, ProgressStatus.CANCELLED]
        assert requests_mock.call_count == 1

    def test_invalid_max_attempts(self, provider):
        with pytest.raises(ValidationError):
            provider.wait_for_transaction(TX_HASH, max_attempts=0)
