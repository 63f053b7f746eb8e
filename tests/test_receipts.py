"""
Tests for the receipt parsers.
"""
import dataclasses

import pytest

from klever_sdk import parse_receipt
from klever_sdk.exceptions import ParseError
from klever_sdk.models import TransactionInfo
from conftest import RECEIVER, SENDER, TX_HASH, VALIDATOR


def make_tx(receipts, contract=None, sender=SENDER):
    return {
        "hash": TX_HASH,
        "status": "success",
        "sender": sender,
        "contract": contract or [],
        "receipts": receipts,
    }


class TestTransfer:

    def test_single_transfer(self):
        tx = make_tx([{"type": 0, "from": SENDER, "to": RECEIVER, "value": 1000000, "assetId": "KLV"}])

        result = parse_receipt.transfer(tx)

        assert result.sender == SENDER
        assert result.receiver == RECEIVER
        assert result.amount == 1000000
        assert result.kda == "KLV"
        assert result.transfers is None
        assert result.raw is tx

    def test_fan_out_transfer(self):
        receipts = [
            {"type": 0, "from": SENDER, "to": RECEIVER, "value": i + 1, "assetId": "KFI-1A2B"}
            for i in range(22)
        ]

        result = parse_receipt.transfer(make_tx(receipts))

        assert result.amount == 1
        assert len(result.transfers) == 22
        assert [t.amount for t in result.transfers] == list(range(1, 23))
        assert all(t.kda == "KFI-1A2B" for t in result.transfers)

    def test_defaults(self):
        result = parse_receipt.transfer(make_tx([{"typeString": "Transfer", "to": RECEIVER, "amount": "77"}]))

        assert result.sender == SENDER
        assert result.amount == 77
        assert result.kda == "KLV"

    def test_other_receipts_are_ignored(self):
        tx = make_tx([
            {"type": 3, "bucketId": "b1", "value": 5},
            {"type": 0, "to": RECEIVER, "value": 9},
        ])
        result = parse_receipt.transfer(tx)
        assert result.amount == 9
        assert result.transfers is None

    def test_missing_receiver(self):
        with pytest.raises(ParseError, match="Receiver not found in transfer receipt"):
            parse_receipt.transfer(make_tx([{"type": 0, "value": 1}]))

    def test_transaction_info_input(self):
        info = TransactionInfo.model_validate(
            make_tx([{"type": 0, "to": RECEIVER, "value": "123456789012345678901234567890"}])
        )

        result = parse_receipt.transfer(info)

        assert result.amount == 123456789012345678901234567890
        assert result.sender == SENDER
        assert result.raw is info


class TestFreezeUnfreeze:

    def test_freeze(self):
        result = parse_receipt.freeze(make_tx([{"type": 3, "bucketId": "bucket-1", "value": 1000}]))

        assert result.bucket_id == "bucket-1"
        assert result.amount == 1000
        assert result.kda == "KLV"
        assert result.freezes is None

    def test_multiple_freezes(self):
        result = parse_receipt.freeze(make_tx([
            {"type": 3, "bucketID": "b1", "amount": 10, "assetId": "KFI-1A2B"},
            {"typeString": "Freeze", "value": 20},
        ]))

        assert result.bucket_id == "b1"
        assert result.kda == "KFI-1A2B"
        assert [(f.bucket_id, f.amount, f.kda) for f in result.freezes] == [
            ("b1", 10, "KFI-1A2B"),
            ("", 20, "KLV"),
        ]

    def test_freeze_without_bucket(self):
        with pytest.raises(ParseError, match="BucketId not found in freeze receipt"):
            parse_receipt.freeze(make_tx([{"type": 3, "value": 1}]))

    def test_unfreeze(self):
        result = parse_receipt.unfreeze(make_tx([
            {"type": 4, "bucketId": "bucket-1", "assetId": "KFI-1A2B", "availableEpoch": "4321"}
        ]))

        assert result.bucket_id == "bucket-1"
        assert result.kda == "KFI-1A2B"
        assert result.available_at == 4321

    def test_unfreeze_defaults(self):
        result = parse_receipt.unfreeze(make_tx([{"typeString": "Unfreeze", "bucketId": "b"}]))
        assert result.kda == "KLV"
        assert result.available_at is None

    def test_unfreeze_without_bucket(self):
        with pytest.raises(ParseError, match="BucketId not found in unfreeze receipt"):
            parse_receipt.unfreeze(make_tx([{"type": 4}]))


class TestClaimWithdraw:

    def test_claim_sums_every_receipt(self):
        tx = make_tx(
            [
                {"type": 17, "assetId": "KLV", "amount": 100},
                {"type": 17, "assetId": "KFI-1A2B", "amount": "250"},
                {"type": 17},
            ],
            contract=[{"type": 9, "parameter": {"claimType": 1}}],
        )

        result = parse_receipt.claim(tx)

        assert [(r.kda, r.amount) for r in result.rewards] == [("KLV", 100), ("KFI-1A2B", 250), ("KLV", 0)]
        assert result.total_claimed == 350
        assert result.claim_type == 1

    def test_claim_without_contract(self):
        result = parse_receipt.claim(make_tx([{"assetId": "KLV", "amount": 1}]))
        assert result.claim_type is None

    @pytest.mark.parametrize("bad", [None, "reward", 42, ["KLV", 1]])
    def test_claim_rejects_malformed_receipt(self, bad):
        tx = make_tx([{"assetId": "KLV", "amount": 1}, bad])
        with pytest.raises(ParseError, match="Malformed receipt") as exc_info:
            parse_receipt.claim(tx)
        assert exc_info.value.operation == "claim"

    def test_withdraw(self):
        tx = make_tx(
            [{"type": 18, "amount": 500, "assetId": "KFI-1A2B"}],
            contract=[{"type": 8, "parameter": {"withdrawType": 0}}],
        )

        result = parse_receipt.withdraw(tx)

        assert result.amount == 500
        assert result.kda == "KFI-1A2B"
        assert result.withdraw_type == 0
        assert result.withdrawals is None

    def test_multiple_withdrawals(self):
        result = parse_receipt.withdraw(make_tx([
            {"type": 18, "amount": 1},
            {"typeString": "Withdraw"},
        ]))
        assert [(w.amount, w.kda) for w in result.withdrawals] == [(1, "KLV"), (0, "KLV")]

    def test_no_withdraw_receipt(self):
        with pytest.raises(ParseError, match="No withdraw receipt found"):
            parse_receipt.withdraw(make_tx([{"type": 0, "to": RECEIVER}]))


class TestDelegation:

    def test_delegate(self):
        result = parse_receipt.delegate(make_tx([{"type": 7, "delegate": VALIDATOR, "bucketId": "b1"}]))
        assert result.validator == VALIDATOR
        assert result.bucket_id == "b1"

    @pytest.mark.parametrize("parameter", [{"toAddress": VALIDATOR}, {"receiver": VALIDATOR}])
    def test_delegate_validator_from_contract(self, parameter):
        tx = make_tx([{"typeString": "Delegate"}], contract=[{"type": 6, "parameter": parameter}])
        result = parse_receipt.delegate(tx)
        assert result.validator == VALIDATOR
        assert result.bucket_id == ""

    def test_delegate_without_validator(self):
        with pytest.raises(ParseError, match="Validator address not found in delegate receipt"):
            parse_receipt.delegate(make_tx([{"type": 7}]))

    def test_undelegate(self):
        result = parse_receipt.undelegate(make_tx([{"type": 7, "bucketId": "b1", "availableEpoch": 99}]))
        assert result.bucket_id == "b1"
        assert result.available_at == 99

    def test_undelegate_errors(self):
        with pytest.raises(ParseError, match="No delegate receipt found in undelegate transaction"):
            parse_receipt.undelegate(make_tx([{"type": 3}]))
        with pytest.raises(ParseError, match="BucketId not found in undelegate receipt"):
            parse_receipt.undelegate(make_tx([{"type": 7}]))


@pytest.mark.parametrize("parser", [
    parse_receipt.freeze, parse_receipt.unfreeze, parse_receipt.claim, parse_receipt.withdraw,
    parse_receipt.delegate, parse_receipt.undelegate, parse_receipt.transfer,
])
def test_empty_receipts(parser):
    tx = make_tx([])
    with pytest.raises(ParseError, match="No receipts found in") as exc_info:
        parser(tx)
    assert exc_info.value.receipt is tx
    assert exc_info.value.operation == parser.__name__


def test_results_are_immutable():
    result = parse_receipt.delegate(make_tx([{"type": 7, "delegate": VALIDATOR}]))
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.validator = RECEIVER


def test_get_path_is_exported():
    tx = make_tx([], contract=[{"parameter": {"claimType": 2}}])
    assert parse_receipt.get_path(tx, "contract[0].parameter.claimType") == 2
    assert parse_receipt.get_path(tx, "contract[3].parameter") is None
