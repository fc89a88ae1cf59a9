from pydantic_settings import BaseSettings
from typing import List, Literal


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = "http://localhost:54321"
    supabase_key: str = ""
    store_timeout: float = 10.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8120
    log_level: str = "info"

    # Secrets
    secret_prefix: str = "sb2_"
    secret_bytes: int = 32
    display_prefix_length: int = 12

    # Quota
    quota_mode: Literal["atomic", "ledger"] = "atomic"
    quota_timezone: str = "UTC"

    # Usage reporting
    usage_query_limit: int = 1000
    usage_default_days: int = 30
    usage_max_days: int = 365

    # Management API (empty = open)
    internal_secret: str = ""

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
