"""Application settings (env/.env)."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class UserCredentials(BaseModel):
    """Per-user access code and Dropbox token pair."""

    access_code: str = Field(min_length=1)
    dropbox_token: str | None = None
    dropbox_refresh_token: str | None = None


class Settings(BaseSettings):
    """Settings for the gallery web app and its Dropbox integration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    dropbox_app_key: str | None = Field(default=None, alias="DROPBOX_APP_KEY")
    dropbox_app_secret: str | None = Field(default=None, alias="DROPBOX_APP_SECRET")
    dropbox_photos_folder: str = Field(
        default="/Camera Uploads (1)",
        alias="DROPBOX_PHOTOS_FOLDER",
    )
    dropbox_duplicates_folder: str = Field(
        default="/Duplicates",
        alias="DROPBOX_DUPLICATES_FOLDER",
    )

    dropbox_api_base: str = Field(
        default="https://api.dropboxapi.com/2",
        alias="DROPBOX_API_BASE",
    )
    dropbox_content_base: str = Field(
        default="https://content.dropboxapi.com/2",
        alias="DROPBOX_CONTENT_BASE",
    )
    dropbox_token_url: str = Field(
        default="https://api.dropbox.com/oauth2/token",
        alias="DROPBOX_TOKEN_URL",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        alias="HTTP_TIMEOUT_SECONDS",
        gt=0,
    )

    photo_batch_size: int = Field(default=10, alias="PHOTO_BATCH_SIZE", ge=1)
    photo_page_min_size: int = Field(default=50, alias="PHOTO_PAGE_MIN_SIZE", ge=1)
    thumbnail_size: str = Field(default="w256h256", alias="THUMBNAIL_SIZE")

    storybook_users: dict[str, UserCredentials] = Field(
        default_factory=dict,
        alias="STORYBOOK_USERS",
    )
    storybook_seed_file: str | None = Field(default=None, alias="STORYBOOK_SEED_FILE")
    storybook_host: str = Field(default="127.0.0.1", alias="STORYBOOK_HOST")
    storybook_port: int = Field(default=3000, alias="STORYBOOK_PORT", ge=1, le=65535)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    mcp_api_key: str | None = Field(default=None, alias="MCP_API_KEY")
    mcp_user: str | None = Field(default=None, alias="MCP_USER")
