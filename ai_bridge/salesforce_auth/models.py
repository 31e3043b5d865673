# ai_bridge/salesforce_auth/models.py
from pydantic import BaseModel, ConfigDict, Field, SecretStr
from typing import Any, Dict, Optional

from ..utils.security import mask_token


class SalesforceUserInfo(BaseModel):
    """Stable attributes of the authenticated Salesforce user."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(description="Salesforce user id (user_id claim).")
    username: str = Field(description="preferred_username, falling back to email, then 'unknown'.")
    organization_id: str = Field(description="Salesforce org id (organization_id claim).")
    email: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def from_userinfo_response(cls, payload: Dict[str, Any]) -> "SalesforceUserInfo":
        """Builds the identity from a /services/oauth2/userinfo response body."""
        return cls(
            user_id=payload["user_id"],
            username=payload.get("preferred_username") or payload.get("email") or "unknown",
            organization_id=payload["organization_id"],
            email=payload.get("email"),
            display_name=payload.get("name"),
        )

    @property
    def rate_limit_key(self) -> str:
        """Key for per-identity rate limiting, never derived from the token."""
        return f"{self.organization_id}:{self.user_id}"


class SalesforceAuth(BaseModel):
    """
    A validated identity plus the live credential used to act on its behalf.

    The access token is held as a SecretStr so that reprs and model dumps
    never print it; use ``masked_token`` in log lines.
    """
    access_token: SecretStr
    instance_url: str
    user_info: SalesforceUserInfo
    validated_at: float = Field(description="Epoch seconds of the upstream validation.")

    @property
    def masked_token(self) -> str:
        return mask_token(self.access_token.get_secret_value())

    def to_tool_metadata(self) -> Dict[str, str]:
        """The salesforceAuth object forwarded to the tool server with every tools/call."""
        return {
            "accessToken": self.access_token.get_secret_value(),
            "instanceUrl": self.instance_url,
            "userId": self.user_info.user_id,
            "username": self.user_info.username,
        }


class TokenCacheEntry(BaseModel):
    """Cached validation result, usable only while younger than the TTL."""
    user_info: SalesforceUserInfo
    validated_at: float
