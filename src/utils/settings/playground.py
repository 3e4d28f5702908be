"""Playground credit and execution policy."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class PlaygroundSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Ledger policy
    SIGNUP_CREDITS: int = 5
    MONTHLY_CREDIT_ALLOWANCE: int = 200
    ROLLOVER_CAP: int = 200
    ROLLOVER_VALIDITY_DAYS: int = 30
    DEBIT_MAX_ATTEMPTS: int = 5

    # Estimation policy (1 token ~ 4 chars, 30% buffer for the response)
    CHARS_PER_TOKEN: int = 4
    RESPONSE_TOKEN_BUFFER: float = 1.3
    TOKENS_PER_CREDIT: int = 5000
    MAX_TOKENS_PER_REQUEST: int = 20000
    CUSTOM_PROMPT_MULTIPLIER: float = 2.0

    # Execution limits
    MAX_INPUT_LENGTH: int = 10000
    RUN_TIMEOUT_SECONDS: float = 60.0
    RUN_MAX_OUTPUT_TOKENS: int = 4096
    CUSTOM_PROMPT_TIMEOUT_SECONDS: float = 30.0
    CUSTOM_PROMPT_MAX_OUTPUT_TOKENS: int = 1024
    CUSTOM_PROMPT_MAX_TURNS: int = 3

    # Anonymous access and throttling
    ANONYMOUS_RUNS_PER_MONTH: int = 1
    RUN_RATE_LIMIT: int = 20  # requests per window
    RUN_RATE_LIMIT_WINDOW_SECONDS: int = 60

    PURCHASE_URL: str = "/playground/credits/buy"
