# finalmessage/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./finalmessage.db"

    # chain; without RPC_URL anchors are kept in the local ledger only
    RPC_URL: str | None = None
    CONTRACT_ADDRESS: str | None = None
    CHAIN_ID: int = 80002
    SUBMITTER_PK: str | None = None
    WALLET_SECRET: str = "finalmessage-dev-secret"
    # message bodies are sealed at rest with this secret and the user id
    MESSAGE_SECRET: str = "finalmessage-message-secret"

    INACTIVITY_THRESHOLD_DAYS: int = 365
    INACTIVITY_SCAN_MINUTES: int = 60
    ANCHOR_DIFFICULTY: int = 4

    NOTIFY_API_URL: str | None = None
    NOTIFY_API_KEY: str | None = None
    NOTIFY_TIMEOUT: int = 30

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
