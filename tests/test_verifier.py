"""
Notification signature verification.

Every rejection must surface as AuthenticationFailure before anything is parsed
into domain objects.
"""
import json

import pytest

from errors import AuthenticationFailure
from webhooks.verifier import NotificationVerifier

SECRET = 'whsec_unit'


def _signed(fields):
    body = json.dumps(fields).encode()
    return body, NotificationVerifier.sign(body, SECRET)


def test_valid_json_notification_is_decoded():
    body, signature = _signed({'status': 'success', 'token': 'tok_1', 'amount': '98.00'})

    event = NotificationVerifier.verify(body, signature, SECRET)

    assert event.fields['token'] == 'tok_1'
    assert event.fields['amount'] == '98.00'
    assert len(event.digest) == 64


def test_form_encoded_notification_is_decoded():
    body = b'status=success&token=tok_2&custom_param1=user_9&amount=98.00'
    signature = NotificationVerifier.sign(body, SECRET)

    event = NotificationVerifier.verify(body, signature, SECRET)

    assert event.fields == {'status': 'success', 'token': 'tok_2', 'custom_param1': 'user_9', 'amount': '98.00'}


def test_sha256_prefix_and_uppercase_hex_are_accepted():
    body, signature = _signed({'status': 'pending', 'token': 'tok_3'})

    event = NotificationVerifier.verify(body, 'sha256=' + signature.upper(), SECRET)

    assert event.fields['status'] == 'pending'


@pytest.mark.parametrize('header', [None, '', 'deadbeef', '0' * 64])
def test_missing_or_wrong_signature_is_rejected(header):
    body, _ = _signed({'status': 'success', 'token': 'tok_4'})

    with pytest.raises(AuthenticationFailure) as exc_info:
        NotificationVerifier.verify(body, header, SECRET)

    assert exc_info.value.status_code == 401


def test_signature_over_different_body_is_rejected():
    body, signature = _signed({'status': 'success', 'token': 'tok_5', 'amount': '98.00'})
    tampered = body.replace(b'98.00', b'1.00')

    with pytest.raises(AuthenticationFailure):
        NotificationVerifier.verify(tampered, signature, SECRET)


def test_empty_secret_fails_closed():
    body = b'{"status": "success"}'
    signature = NotificationVerifier.sign(body, '')

    with pytest.raises(AuthenticationFailure):
        NotificationVerifier.verify(body, signature, '')


def test_non_ascii_signature_header_is_rejected():
    body, _ = _signed({'status': 'success'})

    with pytest.raises(AuthenticationFailure):
        NotificationVerifier.verify(body, 'sha256=ü' * 10, SECRET)


@pytest.mark.parametrize('body', [b'{not json', b'["a", "b"]', b'', b'\xff\xfe'])
def test_correctly_signed_but_malformed_body_is_rejected(body):
    signature = NotificationVerifier.sign(body, SECRET)

    with pytest.raises(AuthenticationFailure):
        NotificationVerifier.verify(body, signature, SECRET)
