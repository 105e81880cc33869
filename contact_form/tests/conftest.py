import pytest
from fastapi.testclient import TestClient
from contact_form.main import app
from contact_form.tests.fixtures.contact import *
from contact_form.tests.fixtures.session import fake_table, memory_backend, session_settings
from contact_form.tests.constants.contact import ContactTestConstants


@pytest.fixture(scope="function")
def client():
    """Fixture providing a TestClient that keeps cookies between requests."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def csrf_token(client):
    """Fixture visiting the input page once and returning the issued CSRF token."""
    response = client.get("/contact")
    assert response.status_code == 200
    return client.cookies.get("csrf_token")


@pytest.fixture(scope="function")
def valid_form(csrf_token):
    """Fixture providing a complete, valid confirm submission."""
    return {
        **ContactTestConstants.MOCK_VALID_FORM.value,
        "csrf_token": csrf_token,
        "g-recaptcha-response": ContactTestConstants.MOCK_BOT_TOKEN.value,
    }


@pytest.fixture(scope="function")
def confirmed_client(client, valid_form, mock_bot_verify):
    """Fixture providing a client whose session already holds confirmed data."""
    response = client.post("/contact/confirm", data=valid_form)
    assert response.status_code == 200
    return client
