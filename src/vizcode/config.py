from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class AppConfig:
    """Top-level configuration for the application.

    - `root_dir`: Repository root (where `.env` is looked up).
    - `canvas_width` / `canvas_height`: Drawing area used by the layout engine.
    - `parse_service_url`: Base URL of the optional remote parse service.
    - `use_remote`: Whether a session tries the remote service after each local parse.
    - `remote_timeout`: Request timeout for the remote service, in seconds.
    """

    root_dir: Path
    canvas_width: float = 2000
    canvas_height: float = 1200
    parse_service_url: str = "http://localhost:5001"
    use_remote: bool = False
    remote_timeout: float = 10.0


def detect_repo_root() -> Path:
    """Detect repository root by walking upwards until `.env` or `src` exists.

    Falls back to current working directory.
    """
    cwd = Path.cwd().resolve()
    for p in [cwd] + list(cwd.parents):
        if (p / ".env").exists() or (p / "src").exists():
            return p
    return cwd


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {key}={raw!r}, using {default}")
        return default


def load_config() -> AppConfig:
    # Load .env file from repository root
    root = detect_repo_root()
    load_dotenv(root / ".env")

    return AppConfig(
        root_dir=root,
        canvas_width=_env_float("VIZCODE_CANVAS_WIDTH", 2000),
        canvas_height=_env_float("VIZCODE_CANVAS_HEIGHT", 1200),
        parse_service_url=os.getenv("VIZCODE_PARSE_SERVICE_URL", "http://localhost:5001").rstrip("/"),
        use_remote=os.getenv("VIZCODE_USE_REMOTE", "0") in {"1", "true", "True"},
        remote_timeout=_env_float("VIZCODE_REMOTE_TIMEOUT", 10.0),
    )
