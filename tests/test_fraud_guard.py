import pytest

from audit.services import AuditLog
from errors import FraudDetected
from payment.fraud import FraudGuard, fraud_guard


@pytest.mark.parametrize('claimed', [9799, 9800, 9801])
def test_amount_within_one_cent_is_valid(claimed):
    assert fraud_guard.validate('starter', claimed) is True


@pytest.mark.parametrize('claimed', [9798, 9802, 100, 0, -9800, 49800])
def test_amount_outside_tolerance_is_invalid(claimed):
    assert fraud_guard.validate('starter', claimed) is False


@pytest.mark.parametrize('plan_id', ['enterprise', '', None])
def test_unknown_plan_fails_closed(plan_id):
    assert fraud_guard.validate(plan_id, 9800) is False


def test_missing_claim_fails_closed():
    assert fraud_guard.validate('starter', None) is False


def test_ensure_valid_records_the_mismatch(db):
    with pytest.raises(FraudDetected) as exc_info:
        fraud_guard.ensure_valid(db, 'user_1', 'starter', 100, 'tok_fraud', '10.0.0.1')

    assert exc_info.value.expected_amount == 9800
    entries = AuditLog.list(db, action='fraud_detected')
    assert len(entries) == 1
    assert entries[0].user_id == 'user_1'
    assert entries[0].source_ip == '10.0.0.1'
    assert entries[0].details == {
        'payment_token': 'tok_fraud',
        'plan_id': 'starter',
        'expected_amount': 9800,
        'claimed_amount': 100,
    }


def test_ensure_valid_for_unknown_plan_has_no_expected_amount(db):
    with pytest.raises(FraudDetected):
        fraud_guard.ensure_valid(db, 'user_1', 'gold', 9800, 'tok_gold')

    entry = AuditLog.list(db, action='fraud_detected')[0]
    assert entry.details['expected_amount'] is None


def test_ensure_valid_writes_nothing_for_valid_amount(db):
    FraudGuard().ensure_valid(db, 'user_1', 'unlimited', 99800, 'tok_ok')

    assert AuditLog.list(db) == []
