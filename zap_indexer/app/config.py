"""Config file."""
from typing import Literal
from urllib.parse import quote_plus

from pydantic import AnyHttpUrl, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # NETWORK
    network: Literal["mainnet", "testnet"] = Field("testnet", alias="NETWORK")
    config_file: str = Field("config/config.yml", alias="CONFIG_FILE")

    # DATABASE
    postgres_user: str = Field(..., alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(..., alias="POSTGRES_PASSWORD")
    postgres_server: str = Field(..., alias="POSTGRES_SERVER")
    postgres_port: int = Field(..., alias="POSTGRES_PORT")
    postgres_db: str = Field(..., alias="POSTGRES_DB")
    database_url: str | None = None
    sync_database_url: str | None = None

    # EVENT SOURCE (block explorer)
    viewblock_api_url: AnyHttpUrl = Field(
        "https://api.viewblock.io/v1/zilliqa", alias="VIEWBLOCK_API_URL"
    )
    viewblock_api_key: SecretStr = Field(SecretStr(""), alias="VIEWBLOCK_API_KEY")

    # CHAIN RPC
    zilliqa_rpc_url: AnyHttpUrl = Field("https://dev-api.zilliqa.com", alias="ZILLIQA_RPC_URL")

    # INGESTION
    http_timeout_seconds: float = Field(20.0, alias="HTTP_TIMEOUT_SECONDS")
    start_block: int = Field(0, alias="START_BLOCK")
    block_window_size: int = Field(1_000, alias="BLOCK_WINDOW_SIZE")
    max_window_events: int = Field(5_000, alias="MAX_WINDOW_EVENTS")
    poll_interval_seconds: float = Field(60.0, alias="POLL_INTERVAL_SECONDS")
    fetch_max_attempts: int = Field(5, alias="FETCH_MAX_ATTEMPTS")
    fetch_backoff_seconds: float = Field(1.0, alias="FETCH_BACKOFF_SECONDS")
    fetch_backoff_max_seconds: float = Field(60.0, alias="FETCH_BACKOFF_MAX_SECONDS")

    @model_validator(mode="after")
    def assemble_db_urls(self) -> "Settings":
        if not self.database_url:
            user = quote_plus(self.postgres_user)
            password = quote_plus(self.postgres_password.get_secret_value())
            host = self.postgres_server
            port = self.postgres_port
            db = self.postgres_db

            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        if not self.sync_database_url:
            user = quote_plus(self.postgres_user)
            password = quote_plus(self.postgres_password.get_secret_value())
            host = self.postgres_server
            port = self.postgres_port
            db = self.postgres_db

            self.sync_database_url = f"postgresql://{user}:{password}@{host}:{port}/{db}"

        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings: Settings = Settings()
