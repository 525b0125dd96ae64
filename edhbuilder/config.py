from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "EDH Builder"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/edhbuilder"

    user_agent: str = "EDH-Builder/1.0"

    scryfall_api_base: str = "https://api.scryfall.com"
    # Scryfall asks for 50-100ms between requests
    scryfall_rate_limit_ms: int = 100
    # Hard limit of the /cards/collection endpoint
    scryfall_batch_size: int = 75

    moxfield_api_base: str = "https://api2.moxfield.com/v2"

    card_stale_after_days: int = 30

    image_fetch_timeout_seconds: float = 15.0
    max_concurrent_image_uploads: int = 3

    # Fuzzy suggestions for unresolved import names
    suggestion_limit: int = 5
    suggestions_per_name: int = 3
    suggestion_delay_ms: int = 100

    # Cloudflare R2 (S3-compatible). All five must be set for image caching.
    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket_name: str = ""
    r2_public_url: str = ""


settings = Settings()
