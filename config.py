"""
Application settings for the media upload service
Values are read from environment variables or a local .env file
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Blob store selection: "firebase" or "local"
    storage_backend: str = "firebase"
    storage_timeout_seconds: float = 30.0

    # Firebase / GCS object storage
    firebase_storage_bucket: str = "your-project.appspot.com"
    firebase_storage_base_url: str = "https://firebasestorage.googleapis.com/v0"
    firebase_auth_token: str = ""

    # Local filesystem store
    local_storage_dir: str = "uploads"
    local_public_base_url: str = "/uploads"

    # Accepted media types (jpg is an alias of jpeg)
    allowed_image_types: str = "image/jpeg,image/jpg,image/png,image/webp"

    log_level: str = "INFO"

    @property
    def allowed_image_types_list(self) -> List[str]:
        return [
            media_type.strip().lower()
            for media_type in self.allowed_image_types.split(",")
            if media_type.strip()
        ]


settings = Settings()
