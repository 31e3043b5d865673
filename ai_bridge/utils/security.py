# ai_bridge/utils/security.py
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Placeholder used for tokens too short to mask meaningfully
REDACTED_TOKEN = "****"

# Characters kept visible at each end of a masked token
_MASK_VISIBLE_CHARS = 4

# Length of the token suffix that takes part in the cache key
_CACHE_KEY_TOKEN_SUFFIX_LENGTH = 20


def mask_token(token: Optional[str]) -> str:
    """
    Masks an access token for logging and error payloads.

    Keeps the first and last four characters and replaces the middle.
    Tokens shorter than eight characters collapse to a fixed placeholder,
    so nothing but the outer characters can ever reach a log sink.
    """
    if not token or len(token) < 2 * _MASK_VISIBLE_CHARS:
        return REDACTED_TOKEN
    return f"{token[:_MASK_VISIBLE_CHARS]}...{token[-_MASK_VISIBLE_CHARS:]}"


def derive_token_cache_key(access_token: str, instance_url: str) -> str:
    """
    Builds the token-cache key from a fixed-length token suffix and the instance URL.

    The full token cannot be rebuilt from the key alone.
    """
    token_suffix = access_token[-_CACHE_KEY_TOKEN_SUFFIX_LENGTH:]
    return f"{token_suffix}:{instance_url.rstrip('/')}"
