from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Remote SCP Data API (only URLs under origin + prefix are fetchable)
    data_api_origin: str = "https://scp-data.tedivm.com"
    data_api_path_prefix: str = "/data/scp/"

    max_cache_bytes: int = 256 * 1024 * 1024
    http_timeout_seconds: float = 30.0

    # Comma-separated subset of: items, tales, hubs, goi
    collections: str = "items,tales,hubs,goi"

    rate_limit_window_ms: int = 60_000
    rate_limit_max_requests: int = 60

    audit_log_path: Optional[str] = None

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCP_MCP_",
        extra="ignore"
    )

    def collection_list(self) -> List[str]:
        return [
            part.strip()
            for part in self.collections.split(",")
            if part.strip()
        ]


settings = Settings()
