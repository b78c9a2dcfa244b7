import json
import os
import sys
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlencode

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['PAYMENT_WEBHOOK_SECRET'] = 'test-webhook-secret'
os.environ['SCHEDULER_ENABLED'] = 'false'
os.environ['RECEIPTS_ENABLED'] = 'false'
os.environ['PAYMENT_API_URL'] = ''

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from auth.services import AuthService  # noqa: E402
from config import settings  # noqa: E402
from database import Base, SessionLocal, engine, init_db, utcnow  # noqa: E402
from main import app  # noqa: E402
from payment.store import PaymentRecordStore  # noqa: E402
from subscription.services import SubscriptionLedger  # noqa: E402
from webhooks.verifier import NotificationVerifier  # noqa: E402


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(user_id, role='user', email=None):
        claims = {'sub': user_id, 'role': role}
        if email:
            claims['email'] = email
        return {'Authorization': f'Bearer {AuthService.create_access_token(claims)}'}
    return _headers


@pytest.fixture
def send_notification(client):
    """Post a signed notification; pass signature= to override the computed one."""
    def _send(fields, signature=None, form=False):
        if form:
            body = urlencode(fields).encode()
            content_type = 'application/x-www-form-urlencoded'
        else:
            body = json.dumps(fields).encode()
            content_type = 'application/json'
        if signature is None:
            signature = NotificationVerifier.sign(body, settings.PAYMENT_WEBHOOK_SECRET)
        return client.post(
            '/webhooks/payments',
            content=body,
            headers={settings.PAYMENT_SIGNATURE_HEADER: signature, 'Content-Type': content_type},
        )
    return _send


@pytest.fixture
def pending_payment(db):
    def _create(user_id='user_1', plan_id='starter', token='tok_1', amount=9800, customer_email=None):
        return PaymentRecordStore.create(db, user_id, plan_id, token, amount, customer_email=customer_email)
    return _create


@pytest.fixture
def subscribed_user(db):
    """Give a user an active starter subscription and return the user id."""
    def _subscribe(user_id='subscriber', token='tok_sub', days=30):
        SubscriptionLedger.grant(db, user_id, 'starter', token, utcnow() + timedelta(days=days), amount=9800)
        return user_id
    return _subscribe
