"""
contacts/notify.py -- Email notifications for new contact messages.

Two messages per submission: a notification to the site admin and an
auto-reply to the sender. Delivery uses stdlib smtplib. When EMAIL_HOST is
not configured the notifier only logs, which is the normal mode for local
development and tests.

Delivery failures, and contacts whose fields cannot form a valid header, are
logged and reported as False. They never fail the submission itself -- the
message is already stored by the time we get here.
"""

from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage

from contacts.models import Contact
from core.config import Settings

logger = logging.getLogger("folio.contacts")


class ContactNotifier:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def enabled(self) -> bool:
        s = self._settings
        return bool(s.email_host and s.email_from and s.admin_email)

    def build_messages(self, contact: Contact) -> list[EmailMessage]:
        s = self._settings
        name = html.escape(contact.name)
        body = html.escape(contact.message).replace("\n", "<br>")

        to_admin = EmailMessage()
        to_admin["From"] = s.email_from
        to_admin["To"] = s.admin_email
        to_admin["Reply-To"] = contact.email
        to_admin["Subject"] = f"New Contact Form Submission from {contact.name}"
        to_admin.set_content(f"Name: {contact.name}\nEmail: {contact.email}\n\n{contact.message}")
        to_admin.add_alternative(
            f"<h2>New Contact Form Submission</h2>"
            f"<p><strong>Name:</strong> {name}</p>"
            f"<p><strong>Email:</strong> {html.escape(contact.email)}</p>"
            f"<p><strong>Message:</strong></p><p>{body}</p>",
            subtype="html",
        )

        reply = EmailMessage()
        reply["From"] = s.email_from
        reply["To"] = contact.email
        reply["Subject"] = "Thank you for contacting me!"
        reply.set_content(
            f"Dear {contact.name},\n\nI have received your message and will get back to you "
            f"as soon as possible.\n\nBest regards,\n{s.site_name}"
        )
        reply.add_alternative(
            f"<h2>Thank You for Your Message!</h2><p>Dear {name},</p>"
            f"<p>I have received your message and will get back to you as soon as possible.</p>"
            f"<blockquote>{body}</blockquote><p>Best regards,<br>{html.escape(s.site_name)}</p>",
            subtype="html",
        )
        return [to_admin, reply]

    def send_contact_email(self, contact: Contact) -> bool:
        """Send both messages. Returns True on delivery, False if skipped or failed."""
        if not self.enabled:
            logger.info("Email not configured; skipping notification for contact id=%s", contact.id)
            return False
        s = self._settings
        try:
            messages = self.build_messages(contact)
        except ValueError as exc:
            logger.warning("Contact email not built for id=%s: %s", contact.id, exc)
            return False
        try:
            smtp_cls = smtplib.SMTP_SSL if s.email_use_ssl else smtplib.SMTP
            with smtp_cls(s.email_host, s.email_port, timeout=10) as smtp:
                if not s.email_use_ssl:
                    smtp.starttls()
                if s.email_user:
                    smtp.login(s.email_user, s.email_password)
                for message in messages:
                    smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Contact email failed for id=%s: %s", contact.id, exc)
            return False
        logger.info("Contact emails sent for id=%s", contact.id)
        return True
