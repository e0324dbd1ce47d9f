"""
Outbound delivery channels.

A channel delivers one already-rendered message to one recipient and
reports success as a boolean.  Channels own their transport timeouts and
never raise: missing contact details, disabled configuration and
transport errors are logged and reported as ``False``.
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from clinic.services.recipients import Recipient

logger = logging.getLogger(__name__)


class Channel(ABC):
    name = 'base'

    @abstractmethod
    def send(self, recipient: Recipient, subject: str, body: str, html: Optional[str] = None) -> bool:
        """Deliver one message; ``True`` only when the transport accepted it."""


class EmailChannel(Channel):
    name = 'email'

    def send(self, recipient: Recipient, subject: str, body: str, html: Optional[str] = None) -> bool:
        if not recipient.email:
            logger.warning('no email address for %s %s', recipient.role, recipient.name)
            return False
        try:
            connection = get_connection(timeout=settings.EMAIL_TIMEOUT)
            msg = EmailMultiAlternatives(
                subject=subject,
                body=body,
                from_email=settings.DEFAULT_FROM_EMAIL,
                to=[recipient.email],
                connection=connection,
            )
            if html:
                msg.attach_alternative(html, 'text/html')
            msg.send(fail_silently=False)
        except Exception as e:
            logger.error('email to %s %s failed: %s', recipient.role, recipient.email, e)
            return False
        logger.info('email sent to %s %s: %s', recipient.role, recipient.email, subject)
        return True


def normalise_phone(phone: str, country_code: Optional[str] = None) -> str:
    """Return ``phone`` in E.164 form, prefixing the default country code.

    ``0300-1234567`` becomes ``+923001234567`` with country code ``92``.
    """
    country_code = country_code or settings.PHONE_DEFAULT_COUNTRY_CODE
    explicit = phone.strip().startswith('+')
    digits = re.sub(r'\D', '', phone)
    if not digits:
        return ''
    if not explicit and not digits.startswith(country_code):
        digits = country_code + digits.lstrip('0')
    return '+' + digits


class TwilioChannel(Channel):
    """SMS or WhatsApp delivery through Twilio."""

    def __init__(self, flavour: str = 'sms'):
        if flavour not in ('sms', 'whatsapp'):
            raise ValueError(f'unknown twilio flavour: {flavour}')
        self.flavour = flavour
        self.name = flavour

    def _sender(self) -> str:
        return settings.TWILIO_WHATSAPP_FROM if self.flavour == 'whatsapp' else settings.TWILIO_SMS_FROM

    def _client(self) -> Client:
        return Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN,
                      http_client=TwilioHttpClient(timeout=settings.TWILIO_TIMEOUT))

    def send(self, recipient: Recipient, subject: str, body: str, html: Optional[str] = None) -> bool:
        sender = self._sender()
        if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and sender):
            logger.warning('twilio not configured, skipping %s to %s', self.flavour, recipient.role)
            return False
        to = normalise_phone(recipient.phone or '')
        if not to:
            logger.warning('no phone number for %s %s', recipient.role, recipient.name)
            return False
        if self.flavour == 'whatsapp':
            to = f'whatsapp:{to}'
        try:
            message = self._client().messages.create(from_=sender, to=to, body=body)
        except (TwilioException, OSError) as e:
            logger.error('%s to %s %s failed: %s', self.flavour, recipient.role, to, e)
            return False
        logger.info('%s sent to %s %s (sid=%s)', self.flavour, recipient.role, to, message.sid)
        return True


def build_channel(name: str) -> Channel:
    if name == 'email':
        return EmailChannel()
    if name in ('sms', 'whatsapp'):
        return TwilioChannel(name)
    raise ValueError(f'unknown notification channel: {name}')


def active_channels() -> list[Channel]:
    return [build_channel(n) for n in settings.NOTIFY_CHANNELS]
