from enum import Enum


class ContactTestConstants(Enum):
    MOCK_BOT_TOKEN = "03AFcWeA6x-test-token"
    MOCK_NAME = "Jo"
    MOCK_EMAIL = "a@x.com"
    MOCK_CATEGORY = "product"
    MOCK_BODY = "hi"
    MOCK_VALID_FORM = {
        "name": MOCK_NAME,
        "email": MOCK_EMAIL,
        "email_cmp": MOCK_EMAIL,
        "category": MOCK_CATEGORY,
        "body": MOCK_BODY,
    }
    MOCK_PADDED_FORM = {
        "name": "  Jo ",
        "email": " a@x.com",
        "email_cmp": "a@x.com  ",
        "category": " product",
        "body": "\nhi\n",
    }
