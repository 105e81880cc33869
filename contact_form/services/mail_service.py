"""
MailService Module

This module provides email sending capabilities with template rendering using Jinja2.
Messages are delivered over SMTP (Amazon SES SMTP interface by default).
"""

import asyncio
import datetime
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from contact_form.core.config import CATEGORY_LABELS, Settings, settings
from contact_form.core.errors import MailDispatchError

import logging

logger = logging.getLogger(__name__)

# Set up Jinja2 environment; plain-text mail templates are not escaped
template_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")
jinja_env = Environment(
    loader=FileSystemLoader(template_dir),
    autoescape=select_autoescape(["html", "xml"]),
    enable_async=True,
    keep_trailing_newline=True,
)


class MailService:
    """Mail service with template rendering capabilities."""

    def __init__(self, config: Settings = settings):
        self.config = config

    async def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Asynchronously render a Jinja template with the given context.

        Args:
            template_name: The name of the template file to render
            context: Dictionary of variables to pass to the template

        Returns:
            The rendered template as a string

        Raises:
            MailDispatchError: If the template cannot be loaded or rendered
        """
        try:
            template = jinja_env.get_template(template_name)
            return await template.render_async(**context)
        except TemplateError as e:
            logger.error(f"Error rendering template {template_name}: {str(e)}")
            raise MailDispatchError(f"Error rendering template: {str(e)}") from e

    async def send_email(
        self,
        recipient: str,
        subject: str,
        template_name: str,
        context: Dict[str, Any],
    ) -> None:
        """
        Send an email using a Jinja template.

        Args:
            recipient: Email address of the recipient
            subject: Email subject line
            template_name: Name of the text template to use
            context: Dictionary of variables to pass to the template

        Raises:
            MailDispatchError: If the message cannot be rendered or delivered
        """
        template_context = {
            **context,
            "category_labels": CATEGORY_LABELS,
            "current_year": datetime.datetime.now().year,
        }
        text_content = await self.render_template(template_name, template_context)

        message = self.create_email_message(
            sender=self.config.EMAIL_FROM,
            sender_name=self.config.EMAIL_FROM_NAME,
            recipients=[recipient],
            title=subject,
            text=text_content,
        )

        # smtplib blocks, keep it off the event loop
        await asyncio.to_thread(self.send_mail, message)
        logger.info(f"Email sent successfully to {recipient}")

    async def send_admin(self, data: Dict[str, Any], to: Optional[str] = None) -> None:
        """Notify the site administrator of a new inquiry."""
        await self.send_email(
            recipient=to or self.config.EMAIL_ADMIN,
            subject=self.config.MAIL_SUBJECT_ADMIN,
            template_name="mail/admin.txt",
            context={"data": data},
        )

    async def send_user(self, data: Dict[str, Any]) -> None:
        """Send the auto-reply to the person who submitted the form."""
        await self.send_email(
            recipient=data["email"],
            subject=self.config.MAIL_SUBJECT_USER,
            template_name="mail/user.txt",
            context={"data": data},
        )

    def create_email_message(
        self,
        sender: str,
        sender_name: Optional[str],
        recipients: List[str],
        title: str,
        text: str,
    ) -> MIMEMultipart:
        """
        Creates a MIME message with a UTF-8 plain text body.

        Args:
            sender (str): The sender's email address.
            sender_name (str, optional): Display name of the sender.
            recipients (list): List of recipient email addresses.
            title (str): Subject of the email.
            text (str): Plain text body.

        Returns:
            MIMEMultipart: The constructed email message ready to be sent.
        """
        message = MIMEMultipart("mixed")
        message["Subject"] = title

        # if sender_name is provided, the format will be 'Sender Name <email@example.com>'
        if sender_name:
            message["From"] = formataddr((sender_name, sender))
        else:
            message["From"] = sender

        message["To"] = ", ".join(recipients)
        message.attach(MIMEText(text, "plain", "utf-8"))

        return message

    def send_mail(self, message: MIMEMultipart) -> None:
        """
        Sends a message over SMTP with STARTTLS.

        Args:
            message (MIMEMultipart): Message built by ``create_email_message``.

        Raises:
            MailDispatchError: On any SMTP or connection failure.
        """
        try:
            with smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT) as server:
                server.starttls()
                if self.config.SMTP_USER and self.config.SMTP_PASSWORD:
                    server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.send_message(message, from_addr=self.config.EMAIL_FROM)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send mail with error: {str(e)}")
            raise MailDispatchError(f"Failed to send email: {str(e)}") from e


mail_service = MailService()
