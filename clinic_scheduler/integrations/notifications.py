"""Notification collaborator (fire-and-forget SMS)."""

import logging

from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from clinic_scheduler.core import config

logger = logging.getLogger(__name__)

TEMPLATES = {
    'appointment_booked': 'Hi {client_name}, your {service_name} appointment on {start} is booked.',
    'appointment_pending_payment': 'Hi {client_name}, complete payment to confirm your appointment on {start}.',
    'appointment_confirmed': 'Hi {client_name}, your appointment on {start} is confirmed.',
    'cancellation_requested': 'Cancellation requested for the appointment on {start} with {client_name}.',
    'cancellation_denied': 'Hi {client_name}, your appointment on {start} is still on.',
    'appointment_canceled': 'Hi {client_name}, your appointment on {start} has been canceled.',
    'appointment_rescheduled': 'Hi {client_name}, your appointment has moved to {start}.',
    'appointment_completed': 'Thanks for visiting, {client_name}!',
    'appointment_reminder': 'Reminder: {client_name}, you have an appointment on {start}.',
}


class NotificationError(Exception):
    pass


def render_message(template_category: str, variables: dict) -> str:
    template = TEMPLATES.get(template_category)
    if template is None:
        raise NotificationError(f'Unknown notification template: {template_category}')
    try:
        return template.format(**variables)
    except KeyError as exc:
        raise NotificationError(f'Missing variable {exc} for template {template_category}') from exc


class Notifier:
    def notify(self, recipient: str | None, template_category: str, variables: dict) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Used when no SMS provider is configured."""

    def notify(self, recipient: str | None, template_category: str, variables: dict) -> None:
        logger.info('Notification %s for %s: %s', template_category, recipient, render_message(template_category, variables))


class TwilioNotifier(Notifier):
    def __init__(self, account_sid: str, auth_token: str, phone_number: str):
        self.phone_number = phone_number
        self.client = Client(account_sid, auth_token)

    def notify(self, recipient: str | None, template_category: str, variables: dict) -> None:
        if not recipient:
            raise NotificationError('Recipient has no phone number.')
        if not self.phone_number:
            raise NotificationError('Missing Twilio from number for SMS.')

        try:
            self.client.messages.create(
                to=recipient,
                from_=self.phone_number,
                body=render_message(template_category, variables),
            )
        except TwilioException as exc:
            raise NotificationError(str(exc)) from exc


def get_notifier() -> Notifier:
    if config.TWILIO_ACCOUNT_SID and config.TWILIO_AUTH_TOKEN:
        return TwilioNotifier(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN, config.TWILIO_PHONE_NUMBER)
    return LogNotifier()
