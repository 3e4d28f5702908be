from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    JWT_SECRET: SecretStr = SecretStr("dev-jwt-secret-change-me")
    JWT_AUDIENCE: str = "authenticated"
