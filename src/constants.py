"""Constants for the application."""

import re


# Slack URLs
SLACK_SIGNIN_URL = "https://slack.com/signin"
SLACK_API_BASE_URL = "https://app.slack.com/api"
SLACK_APP_ORIGIN = "https://app.slack.com"

# Session token
XOXC_TOKEN_REGEX = re.compile(r"xoxc-[0-9]+-[0-9]+-[0-9]+-[0-9a-z]{64}")
MULTIPART_TOKEN_REGEX = re.compile(r'name="token"[\s\S]*?\r?\n\r?\n(xoxc-[^\r\n]+)')
TOKEN_ROUTE_PATTERN = "**/api/api.features*"

# Slack Element Selectors
SLACK_EMAIL_SELECTORS = [
    'input[data-qa="signin_domain_input"]',
    'input[data-qa="email_field"]',
    'input[type="email"]',
    'input[name="email"]',
    'input[placeholder*="name@work-email.com"]',
    'input[placeholder*="email"]',
]

SLACK_CONTINUE_BUTTON_SELECTORS = [
    'button[data-qa="submit_button"]',
    'button:has-text("Sign In With Email")',
    'button:has-text("Continue")',
    'button[type="submit"]',
]

# Login flow page markers
WORKSPACE_LIST_SELECTOR = ".p-workspaces_list__panel"
WORKSPACE_OPEN_LINK_SELECTOR = '[data-qa="current_workspaces_open_link"]'
WORKSPACE_TITLE_SELECTOR = ".p-workspace_info__title"
WORKSPACE_LINK_ANCESTOR_XPATH = 'xpath=ancestor::a[contains(@class, "p-workspaces_list__link")]'
CODE_FIRST_DIGIT_SELECTOR = 'input[aria-label="digit 1 of 6"]'
CODE_INPUT_SELECTOR = '[data-qa="confirmation_code_input"]'
CODE_DIGIT_SELECTOR_TEMPLATE = 'input[aria-label="digit {index} of 6"]'

WORKSPACE_LOADED_SELECTORS = [
    ".p-workspace_sidebar",
    '[data-qa="workspace_name"]',
    ".p-channel_sidebar",
    ".p-loading_screen",
]

# Cookie consent banners
ONETRUST_BANNER_SELECTOR = "#onetrust-banner-sdk"
ONETRUST_ACCEPT_SELECTOR = "#onetrust-accept-btn-handler"
ONETRUST_REJECT_SELECTOR = "#onetrust-reject-all-handler"
SLACK_BANNER_SELECTORS = [
    '[data-qa="banner_acknowledge_button"]',
    ".p-banner__acknowledge",
    '[data-qa="cookie_banner_accept"]',
]

# Verification email
GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]
SLACK_CODE_SENDER = "slack.com"
SLACK_CODE_SUBJECT = "confirmation code"
SLACK_CODE_REGEX = re.compile(r"([A-Z0-9]{3}-[A-Z0-9]{2,3})")

# Timeouts (in milliseconds)
DEFAULT_TIMEOUT = 30000
PAGE_SETTLE_MS = 2000
STATE_REPROBE_GRACE_MS = 3000
WORKSPACE_MARKER_TIMEOUT_MS = 10000
WORKSPACE_CLICK_VERIFY_TIMEOUT_MS = 10000
AUTH_BUTTON_VISIBLE_TIMEOUT_MS = 5000
CODE_DIGIT_DELAY_MS = 100
