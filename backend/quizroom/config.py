from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


class Settings:
    def __init__(self) -> None:
        self.ws_host = os.getenv("WS_HOST", "0.0.0.0").strip() or "0.0.0.0"
        self.ws_port = _int_env("WS_PORT", 1999)
        self.log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
        self.cors_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ] or ["*"]
        self.max_message_bytes = max(1024, _int_env("MAX_MESSAGE_BYTES", 65536))
        self.empty_room_ttl_seconds = max(0, _int_env("EMPTY_ROOM_TTL_SECONDS", 600))
        self.send_timeout_seconds = max(0.01, _float_env("SEND_TIMEOUT_SECONDS", 5.0))
        self.service_name = os.getenv("SERVICE_NAME", "Quiz Room Server").strip() or "Quiz Room Server"
        self.service_version = os.getenv("SERVICE_VERSION", "1.0.0").strip() or "1.0.0"


settings = Settings()
