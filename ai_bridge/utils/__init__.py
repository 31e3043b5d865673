# ai_bridge/utils/__init__.py
from .security import mask_token, derive_token_cache_key, REDACTED_TOKEN

__all__ = [
    "mask_token",
    "derive_token_cache_key",
    "REDACTED_TOKEN",
]
