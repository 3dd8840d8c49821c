"""Delivery providers: Twilio for SMS, Django's mail framework for email.

Providers are constructed explicitly (see ``build_providers``) and
injected into the dispatcher.  A provider either returns the provider
message id or raises ``NotificationFailed`` carrying one of the error
classes ``network``, ``rejected``, ``rate_limited`` or ``timeout``.
Every outbound call is bounded by a timeout.
"""

from __future__ import annotations

import smtplib
import socket
from email.utils import make_msgid
from typing import Dict, Optional, Protocol

import requests
import structlog
from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.core.mail.utils import DNS_NAME
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from modules.notifications.models import Channel

logger = structlog.get_logger(__name__)

NETWORK = "network"
REJECTED = "rejected"
RATE_LIMITED = "rate_limited"
TIMEOUT = "timeout"
# Anything a provider raised that it did not classify itself.
UNEXPECTED = "unexpected"


class NotificationFailed(Exception):
    """A provider could not deliver a message."""

    def __init__(self, error_class: str, message: str = "") -> None:
        self.error_class = error_class
        super().__init__(message or error_class)


class INotificationProvider(Protocol):
    """Provider interface used by the dispatcher."""

    @property
    def is_configured(self) -> bool: ...

    def send(
        self, recipient: str, message: str, subject: str = "", html_message: str = ""
    ) -> str: ...


class TwilioSMSProvider:
    """SMS through Twilio: ``{recipientPhone, message, senderId}``.

    Configured only when the account SID, auth token and sender id are
    all present.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        sender_id: str,
        timeout: float = 10.0,
        client: Optional[Client] = None,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._sender_id = sender_id
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls) -> TwilioSMSProvider:
        return cls(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            sender_id=settings.SMS_SENDER_ID,
            timeout=settings.SMS_TIMEOUT,
        )

    @property
    def is_configured(self) -> bool:
        if self._client is not None:
            return bool(self._sender_id)
        return bool(self._account_sid and self._auth_token and self._sender_id)

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(
                self._account_sid,
                self._auth_token,
                http_client=TwilioHttpClient(timeout=self._timeout),
            )
        return self._client

    def send(
        self, recipient: str, message: str, subject: str = "", html_message: str = ""
    ) -> str:
        try:
            result = self._get_client().messages.create(
                to=recipient, from_=self._sender_id, body=message
            )
        except TwilioRestException as exc:
            if exc.status == 429:
                raise NotificationFailed(RATE_LIMITED, exc.msg) from exc
            if 400 <= exc.status < 500:
                raise NotificationFailed(REJECTED, exc.msg) from exc
            raise NotificationFailed(NETWORK, exc.msg) from exc
        except requests.Timeout as exc:
            raise NotificationFailed(TIMEOUT, str(exc)) from exc
        except (requests.ConnectionError, TwilioException) as exc:
            raise NotificationFailed(NETWORK, str(exc)) from exc
        return result.sid


class DjangoEmailProvider:
    """Email through ``django.core.mail``:
    ``{recipientEmail, subject, htmlBody, textBody}``.

    The generated ``Message-ID`` header is reported as the provider
    message id.
    """

    def __init__(
        self,
        from_email: str,
        timeout: float = 10.0,
        backend: Optional[str] = None,
        host: str = "",
    ) -> None:
        self._from_email = from_email
        self._timeout = timeout
        self._backend = backend
        self._host = host

    @classmethod
    def from_settings(cls) -> DjangoEmailProvider:
        return cls(
            from_email=settings.DEFAULT_FROM_EMAIL,
            timeout=settings.EMAIL_TIMEOUT,
            backend=settings.EMAIL_BACKEND,
            host=settings.EMAIL_HOST,
        )

    @property
    def is_configured(self) -> bool:
        if not self._from_email:
            return False
        if self._backend and self._backend.endswith("smtp.EmailBackend"):
            return bool(self._host)
        return True

    def send(
        self, recipient: str, message: str, subject: str = "", html_message: str = ""
    ) -> str:
        message_id = make_msgid(domain=str(DNS_NAME))
        connection = get_connection(
            backend=self._backend, fail_silently=False, timeout=self._timeout
        )
        email = EmailMultiAlternatives(
            subject=subject,
            body=message,
            from_email=self._from_email,
            to=[recipient],
            connection=connection,
            headers={"Message-ID": message_id},
        )
        if html_message:
            email.attach_alternative(html_message, "text/html")

        try:
            delivered = email.send()
        except (
            smtplib.SMTPRecipientsRefused,
            smtplib.SMTPSenderRefused,
            smtplib.SMTPDataError,
            smtplib.SMTPAuthenticationError,
        ) as exc:
            raise NotificationFailed(REJECTED, str(exc)) from exc
        except (socket.timeout, TimeoutError) as exc:
            raise NotificationFailed(TIMEOUT, str(exc)) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationFailed(NETWORK, str(exc)) from exc

        if not delivered:
            raise NotificationFailed(REJECTED, "No recipient accepted the message.")
        return message_id


def build_providers() -> Dict[str, INotificationProvider]:
    """Providers keyed by channel, built from settings."""
    return {
        Channel.SMS: TwilioSMSProvider.from_settings(),
        Channel.EMAIL: DjangoEmailProvider.from_settings(),
    }
