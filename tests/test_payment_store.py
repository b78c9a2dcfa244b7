from datetime import timedelta

import pytest

from database import utcnow
from errors import AnomalousTransition
from payment.models import PaymentAttempt
from payment.store import ALLOWED_TRANSITIONS, COMPLETED, FAILED, PENDING, REFUNDED, PaymentRecordStore


def test_create_starts_pending(db, pending_payment):
    payment = pending_payment(token='tok_new')

    assert payment.status == PENDING
    assert PaymentRecordStore.find_by_token(db, 'tok_new').amount == 9800
    assert PaymentRecordStore.find_by_token(db, 'missing') is None


@pytest.mark.parametrize('path', [
    [COMPLETED],
    [FAILED],
    [COMPLETED, REFUNDED],
])
def test_allowed_transitions(db, pending_payment, path):
    pending_payment(token='tok_path')

    for status in path:
        PaymentRecordStore.update_status(db, 'tok_path', status)

    assert PaymentRecordStore.find_by_token(db, 'tok_path').status == path[-1]


@pytest.mark.parametrize('path, rejected', [
    ([], REFUNDED),
    ([FAILED], COMPLETED),
    ([FAILED], REFUNDED),
    ([COMPLETED], FAILED),
    ([COMPLETED], PENDING),
    ([COMPLETED, REFUNDED], COMPLETED),
])
def test_disallowed_transitions_are_rejected_without_change(db, pending_payment, path, rejected):
    pending_payment(token='tok_bad')
    for status in path:
        PaymentRecordStore.update_status(db, 'tok_bad', status)
    before = PaymentRecordStore.find_by_token(db, 'tok_bad').status

    with pytest.raises(AnomalousTransition) as exc_info:
        PaymentRecordStore.update_status(db, 'tok_bad', rejected)

    db.rollback()
    assert exc_info.value.current == before
    assert PaymentRecordStore.find_by_token(db, 'tok_bad').status == before


def test_same_status_is_a_no_op(db, pending_payment):
    pending_payment(token='tok_same')
    PaymentRecordStore.update_status(db, 'tok_same', FAILED)

    payment = PaymentRecordStore.update_status(db, 'tok_same', FAILED)

    assert payment.status == FAILED


def test_unknown_token_is_an_anomaly(db):
    with pytest.raises(AnomalousTransition) as exc_info:
        PaymentRecordStore.update_status(db, 'tok_ghost', COMPLETED)

    assert exc_info.value.current is None


def test_unknown_status_is_a_programming_error(db, pending_payment):
    pending_payment(token='tok_x')

    with pytest.raises(ValueError):
        PaymentRecordStore.update_status(db, 'tok_x', 'expired')


def test_terminal_states_have_no_exits():
    assert ALLOWED_TRANSITIONS[FAILED] == frozenset()
    assert ALLOWED_TRANSITIONS[REFUNDED] == frozenset()


def test_list_stale_pending(db, pending_payment):
    pending_payment(token='tok_old')
    pending_payment(token='tok_fresh')
    pending_payment(token='tok_done')
    db.query(PaymentAttempt).filter(PaymentAttempt.token.in_(['tok_old', 'tok_done'])).update(
        {PaymentAttempt.created_at: utcnow() - timedelta(days=3)}, synchronize_session=False
    )
    db.commit()
    PaymentRecordStore.update_status(db, 'tok_done', COMPLETED)

    stale = PaymentRecordStore.list_stale_pending(db, utcnow() - timedelta(days=1))

    assert [p.token for p in stale] == ['tok_old']
