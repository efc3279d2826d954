import logging

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    environment: str = "development"  # development | test | production
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Database (sqlite for local dev, postgresql+asyncpg for production)
    database_url: str = "sqlite+aiosqlite:///./data/verifications.db"

    # Photo storage
    photo_store_path: str = "./data/uploads"
    photo_backend: str = "disk"  # disk | inline
    max_photo_bytes: int = 10 * 1024 * 1024  # 10MB
    enforce_image_types: bool = True

    # Transaction IDs
    transaction_id_prefix: str = "TXN"
    transaction_id_max_attempts: int = 3

    # Store
    store_timeout_seconds: float = 10.0
    default_list_limit: int = 100
    max_list_limit: int = 1000

    # Webhook fan-out (disabled when empty)
    webhook_url: str = ""
    webhook_timeout_seconds: float = 10.0
    webhook_max_retries: int = 3

    # Orphaned photo sweep
    orphan_sweep_enabled: bool = True
    orphan_sweep_interval_seconds: int = 3600
    orphan_grace_seconds: int = 900

    # CORS
    cors_origins: str = "*"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()

_logger = logging.getLogger("geoverify.config")
_PHOTO_BACKENDS = {"disk", "inline"}


def validate_config(cfg: Settings) -> None:
    is_prod = cfg.environment.lower() in {"production", "prod"}

    if cfg.photo_backend not in _PHOTO_BACKENDS:
        raise RuntimeError(
            f"FATAL: PHOTO_BACKEND must be one of {sorted(_PHOTO_BACKENDS)}, "
            f"got '{cfg.photo_backend}'."
        )

    if cfg.transaction_id_max_attempts < 1:
        raise RuntimeError("FATAL: TRANSACTION_ID_MAX_ATTEMPTS must be at least 1.")

    if cfg.cors_origins == "*":
        if is_prod:
            raise RuntimeError(
                "FATAL: CORS_ORIGINS cannot be '*' in production. "
                "Set explicit trusted origins via the CORS_ORIGINS environment variable."
            )
        _logger.warning(
            "CORS_ORIGINS is set to '*' (allow all). "
            "Configure specific origins for production via the CORS_ORIGINS environment variable."
        )


validate_config(settings)
