from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "fellis.eu"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str

    # Security settings
    secret_key: str
    session_ttl_days: int = 30
    # 64 hex chars (AES-256). Empty means tokens are stored unencrypted.
    token_encryption_key: str = ""

    # Facebook Graph API
    fb_app_id: str = ""
    fb_app_secret: str = ""
    fb_redirect_uri: str = "https://fellis.eu/api/auth/facebook/callback"
    fb_graph_url: str = "https://graph.facebook.com/v21.0"
    fb_dialog_url: str = "https://www.facebook.com/v21.0/dialog/oauth"
    # Read-only scopes: no write/delete permissions on the user's account
    fb_scopes: str = "public_profile,email,user_friends,user_posts,user_photos"
    fb_token_ttl_days: int = 60
    fb_http_timeout_seconds: float | None = None

    # Media storage
    upload_dir: str = "uploads"
    upload_url_prefix: str = "/uploads"

    # Privacy housekeeping
    oauth_state_ttl_seconds: int = 600
    retention_sweep_interval_hours: int = 6

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:5173", "https://fellis.eu"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
