import pytest
import resend

from storefront import create_app
from storefront.config import TestConfig
from storefront.services.mailer import MailError, OutgoingMail, ResendMailer, get_mailer

MAIL = OutgoingMail(to="ana@example.com", subject="Order Confirmation #ORD-000001 - Candles Store",
                    body="Thank you", sender="orders@candles.com")


class _ResendDown(resend.exceptions.ResendError):
    def __init__(self):
        Exception.__init__(self, "service unavailable")


def test_resend_send_params(monkeypatch):
    sent = []

    def fake_send(params):
        sent.append(params)
        return {"id": "re_123"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)

    assert ResendMailer("re_test_key").send(MAIL) == "re_123"
    assert resend.api_key == "re_test_key"
    assert sent == [{
        "from": "orders@candles.com",
        "to": ["ana@example.com"],
        "subject": "Order Confirmation #ORD-000001 - Candles Store",
        "text": "Thank you",
    }]


def test_resend_failure_becomes_mail_error(monkeypatch):
    def down(params):
        raise _ResendDown()

    monkeypatch.setattr(resend.Emails, "send", down)
    with pytest.raises(MailError):
        ResendMailer("re_test_key").send(MAIL)


def test_resend_backend_needs_a_key():
    with pytest.raises(ValueError):
        ResendMailer(None)


def test_backend_is_chosen_from_config():
    class ResendConfig(TestConfig):
        MAIL_BACKEND = "resend"
        RESEND_API_KEY = "re_test_key"

    app = create_app(ResendConfig)
    with app.app_context():
        assert isinstance(get_mailer(), ResendMailer)
