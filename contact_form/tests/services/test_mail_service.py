import smtplib
from email.header import decode_header, make_header

import pytest

from contact_form.core.config import Settings
from contact_form.core.errors import MailDispatchError
from contact_form.services.mail_service import MailService
from contact_form.tests.constants.contact import ContactTestConstants


def make_config():
    config = Settings()
    config.SMTP_HOST = "smtp.test"
    config.SMTP_PORT = 587
    config.SMTP_USER = "smtp-user"
    config.SMTP_PASSWORD = "smtp-pass"
    config.EMAIL_FROM = "noreply@x.com"
    config.EMAIL_FROM_NAME = "Support"
    config.EMAIL_ADMIN = "admin@x.com"
    config.MAIL_SUBJECT_ADMIN = "New inquiry"
    config.MAIL_SUBJECT_USER = "Thank you"
    return config


@pytest.fixture(scope="function")
def mock_smtp(mocker):
    """Fixture to patch smtplib.SMTP and return the connected server mock."""
    smtp = mocker.patch("contact_form.services.mail_service.smtplib.SMTP")
    return smtp


def sent_message(mock_smtp):
    server = mock_smtp.return_value.__enter__.return_value
    server.send_message.assert_called_once()
    return server.send_message.call_args.args[0]


def body_of(message):
    return message.get_payload()[0].get_payload(decode=True).decode("utf-8")


@pytest.mark.asyncio
async def test_send_admin(mock_smtp):
    data = {**ContactTestConstants.MOCK_VALID_FORM.value, "body": "line one\nline two"}

    await MailService(make_config()).send_admin(data)

    mock_smtp.assert_called_once_with("smtp.test", 587)
    server = mock_smtp.return_value.__enter__.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("smtp-user", "smtp-pass")
    server.send_message.assert_called_once()
    assert server.send_message.call_args.kwargs == {"from_addr": "noreply@x.com"}

    message = sent_message(mock_smtp)
    assert message["To"] == "admin@x.com"
    assert message["Subject"] == "New inquiry"
    assert str(make_header(decode_header(message["From"]))) == "Support <noreply@x.com>"

    body = body_of(message)
    assert "Name: Jo" in body
    assert "Email: a@x.com" in body
    assert "Category: About our products" in body
    assert "line one\nline two" in body


@pytest.mark.asyncio
async def test_send_admin_override_recipient(mock_smtp):
    await MailService(make_config()).send_admin(ContactTestConstants.MOCK_VALID_FORM.value, to="ops@x.com")

    assert sent_message(mock_smtp)["To"] == "ops@x.com"


@pytest.mark.asyncio
async def test_send_user(mock_smtp):
    await MailService(make_config()).send_user(ContactTestConstants.MOCK_VALID_FORM.value)

    message = sent_message(mock_smtp)
    assert message["To"] == "a@x.com"
    assert message["Subject"] == "Thank you"

    body = body_of(message)
    assert body.startswith("Dear Jo,")
    assert "Category: About our products" in body


@pytest.mark.asyncio
async def test_no_login_without_credentials(mock_smtp):
    config = make_config()
    config.SMTP_USER = ""
    config.SMTP_PASSWORD = ""

    await MailService(config).send_user(ContactTestConstants.MOCK_VALID_FORM.value)

    server = mock_smtp.return_value.__enter__.return_value
    server.login.assert_not_called()
    server.send_message.assert_called_once()


@pytest.mark.asyncio
async def test_smtp_failure_raises_mail_dispatch_error(mock_smtp):
    server = mock_smtp.return_value.__enter__.return_value
    server.send_message.side_effect = smtplib.SMTPRecipientsRefused({"a@x.com": (550, b"no")})

    with pytest.raises(MailDispatchError):
        await MailService(make_config()).send_user(ContactTestConstants.MOCK_VALID_FORM.value)


@pytest.mark.asyncio
async def test_connection_failure_raises_mail_dispatch_error(mock_smtp):
    mock_smtp.side_effect = ConnectionRefusedError("refused")

    with pytest.raises(MailDispatchError):
        await MailService(make_config()).send_admin(ContactTestConstants.MOCK_VALID_FORM.value)


@pytest.mark.asyncio
async def test_missing_template_raises_mail_dispatch_error(mock_smtp):
    with pytest.raises(MailDispatchError):
        await MailService(make_config()).send_email("a@x.com", "s", "mail/missing.txt", {})

    mock_smtp.assert_not_called()


def test_create_email_message_without_sender_name():
    message = MailService(make_config()).create_email_message(
        sender="noreply@x.com",
        sender_name=None,
        recipients=["a@x.com", "b@x.com"],
        title="Hello",
        text="Body",
    )

    assert message["From"] == "noreply@x.com"
    assert message["To"] == "a@x.com, b@x.com"
    assert body_of(message) == "Body"
