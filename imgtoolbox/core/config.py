import os
import logging
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_ARK_BASE_URL = "https://ark.cn-beijing.volces.com/api/v3"
DEFAULT_ARK_IMAGE_MODEL = "ep-20251016145954-w8c9n"
DEFAULT_ARK_VISION_MODEL = "ep-20251016135624-2qlh2"
DEFAULT_REMOVE_BG_URL = "https://api.remove.bg/v1.0/removebg"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


class Config:
    """Configuration class for the application."""

    def __init__(self):
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_dir = os.getenv("LOG_DIR", "logs")
        self._setup_logging()

        # Upstream credentials are optional at startup and checked per request
        self.ark_api_key: Optional[str] = os.getenv("ARK_API_KEY") or None
        self.ark_base_url = os.getenv("ARK_BASE_URL", DEFAULT_ARK_BASE_URL).rstrip("/")
        self.ark_image_model = os.getenv("ARK_IMAGE_MODEL", DEFAULT_ARK_IMAGE_MODEL)
        self.ark_vision_model = os.getenv("ARK_VISION_MODEL", DEFAULT_ARK_VISION_MODEL)

        self.remove_bg_api_key: Optional[str] = os.getenv("REMOVE_BG_API_KEY") or None
        self.remove_bg_url = os.getenv("REMOVE_BG_URL", DEFAULT_REMOVE_BG_URL)

        self.upstream_timeout = _float_env("UPSTREAM_TIMEOUT_SECONDS", 120.0)
        self.max_file_size_mb = _int_env("MAX_FILE_SIZE_MB", 10)
        self.memory_threshold_mb = _int_env("MEMORY_THRESHOLD_MB", 800)
        self.max_workers = _int_env("MAX_CONCURRENT_WORKERS", 2)

        # Validate configuration
        if self.max_workers < 1:
            self.max_workers = 1
        if self.max_workers > 4:
            self.max_workers = 4
        if self.max_file_size_mb < 1:
            self.max_file_size_mb = 1

        logging.info(
            f"Config initialized: ark_base_url={self.ark_base_url}, "
            f"ark_key={'set' if self.ark_api_key else 'missing'}, "
            f"remove_bg_key={'set' if self.remove_bg_api_key else 'missing'}, "
            f"max_file_size={self.max_file_size_mb}MB, workers={self.max_workers}"
        )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    def _get_log_file_path(self) -> str:
        """Get the path for the log file."""
        os.makedirs(self.log_dir, exist_ok=True)
        return os.path.join(self.log_dir, f"app_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")

    def _setup_logging(self):
        """Set up logging configuration."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if self.log_dir:
            handlers.append(logging.FileHandler(self._get_log_file_path()))
        logging.basicConfig(
            level=self.log_level,
            format='%(asctime)s - %(levelname)s - %(message)s',
            handlers=handlers
        )
