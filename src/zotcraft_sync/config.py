from pydantic import field_validator
from pydantic_settings import BaseSettings


class ConfigurationError(Exception):
    """Raised when required settings are missing for the selected mode."""


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Craft
    craft_api_base: str
    craft_collection_id: str
    craft_api_key: str | None = None
    craft_space_id: str | None = None

    # Zotero
    zotero_mode: str = "local"
    zotero_db_path: str = "~/Zotero/zotero.sqlite"
    zotero_user_id: str | None = None
    zotero_api_key: str | None = None
    zotero_collection_id: str | None = None

    # Local cache
    cache_period: int = 10
    cache_dir: str = "~/.cache/zotcraft-sync"

    # Sync behaviour
    max_items: int = 10
    sync_notes: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"

    @field_validator("craft_api_base", "craft_collection_id")
    @classmethod
    def _require_non_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator(
        "craft_api_key",
        "craft_space_id",
        "zotero_user_id",
        "zotero_api_key",
        "zotero_collection_id",
    )
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("zotero_mode")
    @classmethod
    def _normalize_mode(cls, value: str) -> str:
        return "web" if value.strip().lower() == "web" else "local"

    def require_web_credentials(self) -> tuple[str, str]:
        """Return (user_id, api_key) or raise if web mode is not configured."""
        if not self.zotero_user_id or not self.zotero_api_key:
            raise ConfigurationError(
                "ZOTERO_USER_ID and ZOTERO_API_KEY are required in web mode"
            )
        return self.zotero_user_id, self.zotero_api_key
