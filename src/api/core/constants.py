API_VERSION_HEADER = "X-PRPM-Version"

# JWT Configuration
JWT_ALGORITHM = "HS256"

# Input limits
MAX_INPUT_LENGTH = 10000
MIN_CUSTOM_PROMPT_LENGTH = 10
MAX_CUSTOM_PROMPT_LENGTH = 50000

# Custom prompt warnings (non-blocking)
SHORT_CUSTOM_PROMPT_LENGTH = 50

# Anonymous runs are throttled per IP on top of the monthly fingerprint quota
ANONYMOUS_RUN_RATE_LIMIT = 5  # requests per minute
ANONYMOUS_RUN_WINDOW_SECONDS = 60

# Authentication endpoints configuration
SKIP_AUTH_PATHS = {
    "/openapi.json",
    "/docs",
    "/redoc",
    "/health",
    "/health/liveness",
    "/",
    "/stripe/webhook",
    "/v1/playground/anonymous-run",
    "/v1/playground/credits/packages",
    "/v1/custom-prompt/safety-guidelines",
}

SKIP_AUTH_PATTERNS: list = [
    ("GET", r"^/v1/playground/shared/[A-Za-z0-9_-]+$"),  # public shared sessions
]

# Authenticated when a token is present, public otherwise
OPTIONAL_AUTH_PATHS = {
    "/v1/custom-prompt/info",
}

# Pagination
DEFAULT_SESSION_PAGE_SIZE = 20
MAX_SESSION_PAGE_SIZE = 100
DEFAULT_HISTORY_PAGE_SIZE = 50
MAX_HISTORY_PAGE_SIZE = 100
