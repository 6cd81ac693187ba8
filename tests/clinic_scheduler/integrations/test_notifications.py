import pytest
from twilio.base.exceptions import TwilioException

from clinic_scheduler.core import config
from clinic_scheduler.integrations import notifications
from clinic_scheduler.integrations.notifications import (
    LogNotifier,
    NotificationError,
    TwilioNotifier,
    get_notifier,
    render_message,
)

VARIABLES = {'client_name': 'Pat Lee', 'service_name': 'Facial', 'start': '2026-01-05 10:00'}


def test_render_message_fills_template() -> None:
    assert render_message('appointment_booked', VARIABLES) == (
        'Hi Pat Lee, your Facial appointment on 2026-01-05 10:00 is booked.'
    )


def test_render_message_rejects_unknown_category() -> None:
    with pytest.raises(NotificationError):
        render_message('birthday', VARIABLES)


def test_render_message_requires_variables() -> None:
    with pytest.raises(NotificationError):
        render_message('appointment_booked', {'client_name': 'Pat Lee'})


class _FakeMessages:
    def __init__(self, error: Exception | None = None):
        self.created = []
        self.error = error

    def create(self, **kwargs):
        if self.error:
            raise self.error
        self.created.append(kwargs)


def _notifier(monkeypatch, messages: _FakeMessages, phone_number: str = '+15550009999') -> TwilioNotifier:
    monkeypatch.setattr(notifications, 'Client', lambda sid, token: type('FakeClient', (), {'messages': messages})())
    return TwilioNotifier('AC123', 'token', phone_number)


def test_twilio_notifier_sends_sms(monkeypatch) -> None:
    messages = _FakeMessages()

    _notifier(monkeypatch, messages).notify('+15550000002', 'appointment_reminder', VARIABLES)

    assert messages.created == [
        {
            'to': '+15550000002',
            'from_': '+15550009999',
            'body': 'Reminder: Pat Lee, you have an appointment on 2026-01-05 10:00.',
        }
    ]


def test_twilio_notifier_wraps_provider_errors(monkeypatch) -> None:
    notifier = _notifier(monkeypatch, _FakeMessages(error=TwilioException('boom')))

    with pytest.raises(NotificationError):
        notifier.notify('+15550000002', 'appointment_reminder', VARIABLES)


def test_twilio_notifier_requires_recipient_and_sender(monkeypatch) -> None:
    with pytest.raises(NotificationError):
        _notifier(monkeypatch, _FakeMessages()).notify(None, 'appointment_reminder', VARIABLES)

    with pytest.raises(NotificationError):
        _notifier(monkeypatch, _FakeMessages(), phone_number='').notify('+1555', 'appointment_reminder', VARIABLES)


def test_get_notifier_falls_back_to_logging(monkeypatch) -> None:
    monkeypatch.setattr(config, 'TWILIO_ACCOUNT_SID', '')
    monkeypatch.setattr(config, 'TWILIO_AUTH_TOKEN', '')

    assert isinstance(get_notifier(), LogNotifier)
