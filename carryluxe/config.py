import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from dotenv import load_dotenv

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or default).strip()


def _env_int(name: str, default: int) -> int:
    raw_value = os.getenv(name, str(default))
    try:
        return int(raw_value)
    except (TypeError, ValueError):
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Runtime configuration shared by every storefront component."""

    env: str = "development"
    data_dir: str = os.path.join(PROJECT_ROOT, "data")
    uploads_dir: str = os.path.join(PROJECT_ROOT, "uploads")
    mongo_uri: str = ""

    session_secret: str = "change-me-in-production-carryluxe-session"
    session_ttl: timedelta = timedelta(hours=24)
    session_cookie_name: str = "carryluxe_session"

    admin_email: str = ""
    admin_password: str = ""
    setup_token: str = ""

    order_notify_email: str = ""
    resend_api_key: str = ""
    mail_from: str = "CarryLuxe <no-reply@carryluxe.local>"

    cloudinary_url: str = ""
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "carryluxe"

    product_limit: int = 50
    max_product_images: int = 10
    max_upload_files: int = 5
    max_image_bytes: int = 5 * 1024 * 1024
    max_upload_mb: int = 26
    seed_catalog: bool = True
    show_hidden_product_detail: bool = True

    cors_origins: List[str] = field(default_factory=list)
    trusted_proxy_hops: int = 1
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def notify_recipient(self) -> str:
        return self.order_notify_email or self.admin_email

    @property
    def cloudinary_configured(self) -> bool:
        return bool(self.cloudinary_url or self.cloudinary_cloud_name)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        load_dotenv(dotenv_path)

        on_vercel = _env_str("VERCEL") == "1"
        default_data_dir = (
            os.path.join("/tmp", "data") if on_vercel else cls.data_dir
        )
        default_uploads_dir = (
            os.path.join("/tmp", "uploads") if on_vercel else cls.uploads_dir
        )

        cors_origins = [
            origin.strip()
            for origin in _env_str("CORS_ALLOWED_ORIGINS").split(",")
            if origin.strip()
        ]

        return cls(
            env=_env_str("APP_ENV", "development").lower(),
            data_dir=_env_str("DATA_DIR", default_data_dir),
            uploads_dir=_env_str("UPLOADS_DIR", default_uploads_dir),
            mongo_uri=_env_str("MONGODB_URI"),
            session_secret=_env_str("SESSION_SECRET", cls.session_secret),
            session_ttl=timedelta(hours=max(1, _env_int("SESSION_TTL_HOURS", 24))),
            admin_email=_env_str("ADMIN_EMAIL"),
            admin_password=os.getenv("ADMIN_PASSWORD", "") or "",
            setup_token=_env_str("SETUP_TOKEN"),
            order_notify_email=_env_str("ORDER_NOTIFY_EMAIL"),
            resend_api_key=_env_str("RESEND_API_KEY"),
            mail_from=_env_str("MAIL_FROM", cls.mail_from),
            cloudinary_url=_env_str("CLOUDINARY_URL"),
            cloudinary_cloud_name=_env_str("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=_env_str("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=_env_str("CLOUDINARY_API_SECRET"),
            cloudinary_folder=_env_str("CLOUDINARY_FOLDER", cls.cloudinary_folder),
            product_limit=max(0, _env_int("PRODUCT_LIMIT", cls.product_limit)),
            seed_catalog=_env_flag("SEED_CATALOG", True),
            show_hidden_product_detail=(
                _env_str("HIDDEN_PRODUCT_DETAIL", "show").lower() != "hide"
            ),
            max_upload_mb=max(1, _env_int("MAX_UPLOAD_SIZE_MB", cls.max_upload_mb)),
            cors_origins=cors_origins,
            trusted_proxy_hops=max(0, _env_int("TRUSTED_PROXY_HOPS", 1)),
            log_level=_env_str("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    root_logger = logging.getLogger()
    if not any(getattr(h, "_carryluxe", False) for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, "%Y-%m-%d %H:%M:%S"))
        console_handler._carryluxe = True
        root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, level, logging.INFO))
