from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Recipe Share"
    debug: bool = False

    database_url: str = "sqlite:///./recipeshare.db"

    # Sessions
    secret_key: str = "thisshouldbeabettersecret!"
    session_cookie: str = "session"
    session_max_age: int = 60 * 60 * 24 * 7

    # Media host: "local" writes to media_root, "s3" uses the object store
    media_backend: str = "local"
    media_root: Optional[str] = None
    media_base_url: str = "/media"
    media_folder: str = "recipeshare"

    object_store_endpoint: str = "http://localhost:9000"
    object_store_region: str = "auto"
    object_store_bucket: str = "recipeshare-images"
    object_store_access_key_id: str = "minioadmin"
    object_store_secret_access_key: str = "minioadmin"
    object_public_base_url: str = "http://localhost:9000/recipeshare-images"

    max_images_per_recipe: int = 2
    thumbnail_width: int = 200
    allowed_image_extensions: List[str] = ["jpeg", "jpg", "png"]


settings = Settings()
