# Session keys used by the contact flow
CONTACT_DATA_KEY = "contact_data"  # validated submission awaiting dispatch
CONTACT_INPUT_KEY = "contact_input"  # raw input stashed for repopulation
CONTACT_ERRORS_KEY = "contact_errors"  # field errors stashed for repopulation
CONTACT_SENT_KEY = "contact_sent"  # set once both emails went out

FLASH_ERROR = "error"

# Form field names
FORM_FIELDS = ("name", "email", "email_cmp", "category", "body")
BOT_TOKEN_FIELD = "g-recaptcha-response"

# Paths
INPUT_PATH = "/contact"
COMPLETE_PATH = "/contact/complete"

# Completion guard variants
COMPLETION_GUARD_SESSION = "session"
COMPLETION_GUARD_TOKEN = "token"
