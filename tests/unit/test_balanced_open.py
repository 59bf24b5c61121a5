"""Unit tests for balanced channel open detection."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from invoice_notifier.notify.balanced_open import (
    BALANCED_OPEN_TYPE,
    CAPACITY_TYPE,
    FEE_RATE_TYPE,
    FUNDING_KEY_TYPE,
    REMOTE_KEY_TYPE,
    BalancedOpenProposal,
    balanced_open_request,
    decode_big_size,
)
from invoice_notifier.schemas.invoice import PaymentContribution, TlvRecord

NOW = datetime(2026, 10, 17, 12, 30, tzinfo=UTC)
PARTNER_KEY = "02" + "cc" * 32
FUNDING_KEY = "03" + "dd" * 32


def _records(**overrides) -> tuple[TlvRecord, ...]:
    values = {
        BALANCED_OPEN_TYPE: "01",
        CAPACITY_TYPE: "fe000f4240",
        FEE_RATE_TYPE: "0a",
        REMOTE_KEY_TYPE: PARTNER_KEY,
        FUNDING_KEY_TYPE: FUNDING_KEY,
    }
    values.update(overrides)
    return tuple(TlvRecord(type=t, value=v) for t, v in values.items() if v is not None)


def _htlc(records: tuple[TlvRecord, ...], *, is_confirmed: bool = True) -> PaymentContribution:
    return PaymentContribution(
        in_channel="61x1",
        mtokens="1000",
        tokens=1,
        is_confirmed=is_confirmed,
        messages=records,
    )


def _request(**overrides):
    arguments = {
        "confirmed_at": "2026-10-17T12:00:00Z",
        "is_push": True,
        "payments": (_htlc(_records()),),
        "received_mtokens": "1000",
    }
    arguments.update(overrides)
    with patch("invoice_notifier.notify.balanced_open.utc_now", return_value=NOW):
        return balanced_open_request(**arguments)


# ---------------------------------------------------------------------------
# BigSize
# ---------------------------------------------------------------------------


class TestDecodeBigSize:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("00", 0),
            ("fc", 252),
            ("fd00fd", 253),
            ("fdffff", 65535),
            ("fe00010000", 65536),
            ("ff0000000100000000", 4294967296),
        ],
    )
    def test_decodes(self, value, expected):
        assert decode_big_size(value) == expected

    @pytest.mark.parametrize("value", ["", "fd00", "0001", "zz"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            decode_big_size(value)


# ---------------------------------------------------------------------------
# balanced_open_request
# ---------------------------------------------------------------------------


def test_detects_proposal():
    assert _request() == BalancedOpenProposal(
        capacity=1_000_000,
        fee_rate=10,
        partner_public_key=PARTNER_KEY,
        funding_public_key=FUNDING_KEY,
    )


def test_funding_key_is_optional():
    proposal = _request(payments=(_htlc(_records(**{FUNDING_KEY_TYPE: None})),))

    assert proposal is not None
    assert proposal.funding_public_key is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"is_push": False},
        {"received_mtokens": "2000"},
        {"confirmed_at": None},
        {"confirmed_at": (NOW - timedelta(days=2)).isoformat()},
    ],
)
def test_not_a_proposal_push(overrides):
    assert _request(**overrides) is None


@pytest.mark.parametrize(
    "records",
    [
        _records(**{BALANCED_OPEN_TYPE: None}),
        _records(**{REMOTE_KEY_TYPE: "04" + "cc" * 32}),
        _records(**{REMOTE_KEY_TYPE: None}),
        _records(**{CAPACITY_TYPE: "fe000f4241"}),
        _records(**{CAPACITY_TYPE: "00"}),
        _records(**{CAPACITY_TYPE: "fd"}),
        _records(**{FEE_RATE_TYPE: "00"}),
    ],
)
def test_malformed_records_are_ignored(records):
    assert _request(payments=(_htlc(records),)) is None


def test_requires_a_single_confirmed_htlc():
    records = _records()

    assert _request(payments=(_htlc(records), _htlc(records))) is None
    assert _request(payments=(_htlc(records, is_confirmed=False),)) is None
    assert _request(payments=(_htlc(records), _htlc(records, is_confirmed=False))) is not None
