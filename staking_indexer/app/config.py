"""Config file."""
from urllib.parse import quote_plus

from pydantic import AnyHttpUrl, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("staking-indexer", alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str = Field(..., alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(..., alias="POSTGRES_PASSWORD")
    postgres_server: str = Field(..., alias="POSTGRES_SERVER")
    postgres_port: int = Field(..., alias="POSTGRES_PORT")
    postgres_db: str = Field(..., alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")
    db_pool_size: int = Field(5, alias="DB_POOL_SIZE", gt=0)
    db_max_overflow: int = Field(5, alias="DB_MAX_OVERFLOW", ge=0)
    db_pool_recycle_seconds: int = Field(1_800, alias="DB_POOL_RECYCLE_SECONDS", gt=0)
    db_echo: bool = Field(False, alias="DB_ECHO")

    # CHAIN
    rpc_url: AnyHttpUrl = Field(..., alias="RPC_URL")
    staking_contract_address: str = Field(..., alias="STAKING_CONTRACT_ADDRESS")
    deployment_block: int = Field(0, alias="DEPLOYMENT_BLOCK", ge=0)
    rpc_timeout_seconds: float = Field(20.0, alias="RPC_TIMEOUT_SECONDS", gt=0)

    # FETCH LOOP
    fetch_chunk_size: int = Field(1_000, alias="FETCH_CHUNK_SIZE", gt=0)
    fetch_interval_seconds: float = Field(30.0, alias="FETCH_INTERVAL_SECONDS", gt=0)

    # APPLY LOOP
    apply_batch_size: int = Field(50, alias="APPLY_BATCH_SIZE", gt=0)
    apply_interval_seconds: float = Field(60.0, alias="APPLY_INTERVAL_SECONDS", gt=0)

    # BACKFILL
    backfill_on_start: bool = Field(True, alias="BACKFILL_ON_START")
    backfill_chunk_size: int = Field(5_000, alias="BACKFILL_CHUNK_SIZE", gt=0)

    # NOTIFICATIONS
    notifier_webhook_url: AnyHttpUrl | None = Field(None, alias="NOTIFIER_WEBHOOK_URL")

    # TOKEN
    token_decimals: int = Field(18, alias="TOKEN_DECIMALS", ge=0)

    @field_validator("staking_contract_address")
    @classmethod
    def validate_contract_address(cls, value: str) -> str:
        v = value.strip()
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError("STAKING_CONTRACT_ADDRESS must be a 0x-prefixed 20-byte hex address")
        int(v[2:], 16)
        return v.lower()

    @model_validator(mode="after")
    def assemble_database_url(self) -> "Settings":
        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password.get_secret_value())
        host = self.postgres_server
        port = self.postgres_port
        db = self.postgres_db

        if not self.database_url:
            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


settings: Settings = Settings()
