"""
Client settings loaded from environment variables (prefix ``ERP_``).
"""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Backend ──────────────────────────────────────────────────────────
    api_base_url: str = "http://localhost:5000/api"
    server_base_url: str = ""           # falls back to api_base_url (avatars, uploads)
    secure_origin: bool = False         # reject plain-http urls (mixed content)
    request_timeout_seconds: float = 15.0
    auth_header_name: str = "x-auth-token"

    # ── Session storage ──────────────────────────────────────────────────
    session_store_path: str = str(Path.home() / ".erp_client" / "session.json")

    # ── OTP / password rules ─────────────────────────────────────────────
    otp_cooldown_seconds: int = 60
    otp_length: int = 6
    min_password_length: int = 8

    # ── Profile ──────────────────────────────────────────────────────────
    avatar_max_bytes: int = 2 * 1024 * 1024
    avatar_allowed_types: List[str] = ["image/jpeg", "image/png", "image/webp"]
    fetch_profile_after_register: bool = False

    debug: bool = False
    log_level: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_prefix": "ERP_",
        "case_sensitive": False,
        "extra": "ignore",
    }


config = Settings()
