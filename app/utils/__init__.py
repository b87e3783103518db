from app.utils.dates import now_local, site_timezone, today_local
from app.utils.security import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    create_access_token,
    create_refresh_token,
    create_tokens,
    decode_token,
    hash_password,
    verify_password,
)

__all__ = [
    "ACCESS_TOKEN",
    "REFRESH_TOKEN",
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "create_tokens",
    "decode_token",
    "now_local",
    "site_timezone",
    "today_local",
]
