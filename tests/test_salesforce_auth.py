# tests/test_salesforce_auth.py
import logging

import httpx
import pytest

from ai_bridge.salesforce_auth import (
    SalesforceAuthService,
    InvalidSalesforceTokenError,
    InsufficientPermissionsError,
    TokenValidationFailedError,
)
from ai_bridge.utils.security import mask_token, derive_token_cache_key, REDACTED_TOKEN

from conftest import (
    FakeIdentityProvider, SF_ACCESS_TOKEN, SF_INSTANCE_URL, mock_http_client, userinfo_payload
)


def make_service(provider, clock, ttl=300):
    return SalesforceAuthService(
        token_validation_ttl_seconds=ttl,
        http_client=mock_http_client(provider),
        clock=clock,
    )


@pytest.mark.asyncio
async def test_validate_token_builds_identity_from_userinfo(identity_provider, clock):
    service = make_service(identity_provider, clock)

    auth = await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL + "/")

    assert auth.instance_url == SF_INSTANCE_URL
    assert auth.user_info.user_id == "005xx000001Sv6AAAS"
    assert auth.user_info.organization_id == "00Dxx0000001gPLEAY"
    assert auth.user_info.username == "jane@acme.example"
    assert auth.user_info.display_name == "Jane Admin"
    assert auth.access_token.get_secret_value() == SF_ACCESS_TOKEN
    assert auth.validated_at == clock.now

    request = identity_provider.requests[0]
    assert str(request.url) == f"{SF_INSTANCE_URL}/services/oauth2/userinfo"
    assert request.headers["Authorization"] == f"Bearer {SF_ACCESS_TOKEN}"


@pytest.mark.asyncio
async def test_username_falls_back_to_email_then_unknown(clock):
    payload = userinfo_payload()
    del payload["preferred_username"]
    service = make_service(FakeIdentityProvider(payload=payload), clock)
    auth = await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    assert auth.user_info.username == "jane@acme.example"

    bare = {"user_id": "005B", "organization_id": "00DB"}
    service = make_service(FakeIdentityProvider(payload=bare), clock)
    auth = await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    assert auth.user_info.username == "unknown"


@pytest.mark.asyncio
async def test_cache_hit_makes_no_outbound_call(identity_provider, clock):
    service = make_service(identity_provider, clock)

    first = await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    clock.advance(299)
    second = await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)

    assert identity_provider.call_count == 1
    assert second.user_info == first.user_info
    assert second.validated_at == first.validated_at


@pytest.mark.asyncio
async def test_expired_entry_triggers_exactly_one_revalidation(identity_provider, clock):
    service = make_service(identity_provider, clock)

    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    clock.advance(300)
    refreshed = await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)

    assert identity_provider.call_count == 2
    assert refreshed.validated_at == clock.now


@pytest.mark.asyncio
async def test_same_token_on_other_instance_is_validated_separately(identity_provider, clock):
    service = make_service(identity_provider, clock)

    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    await service.validate_token(SF_ACCESS_TOKEN, "https://other.my.salesforce.com")

    assert identity_provider.call_count == 2
    assert service.cache_size == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status_code, expected_error, expected_http_status",
    [
        (401, InvalidSalesforceTokenError, 401),
        (403, InsufficientPermissionsError, 403),
        (500, TokenValidationFailedError, 502),
        (503, TokenValidationFailedError, 502),
    ],
)
async def test_upstream_status_mapping(clock, status_code, expected_error, expected_http_status):
    service = make_service(FakeIdentityProvider(status_code=status_code), clock)

    with pytest.raises(expected_error) as exc_info:
        await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)

    assert exc_info.value.status_code == expected_http_status
    assert service.cache_size == 0


@pytest.mark.asyncio
async def test_timeout_maps_to_validation_failed_without_token(clock):
    def handler(request):
        raise httpx.ConnectTimeout(f"timed out calling with {SF_ACCESS_TOKEN}", request=request)

    service = SalesforceAuthService(http_client=mock_http_client(handler), clock=clock)

    with pytest.raises(TokenValidationFailedError) as exc_info:
        await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)

    assert SF_ACCESS_TOKEN not in exc_info.value.message
    assert SF_ACCESS_TOKEN not in str(exc_info.value.detail)
    assert mask_token(SF_ACCESS_TOKEN) in exc_info.value.message


@pytest.mark.asyncio
async def test_malformed_userinfo_body_maps_to_validation_failed(clock):
    service = make_service(FakeIdentityProvider(payload={"name": "no ids here"}), clock)

    with pytest.raises(TokenValidationFailedError):
        await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)


@pytest.mark.asyncio
async def test_no_full_token_in_logs(identity_provider, clock, caplog):
    caplog.set_level(logging.DEBUG)
    service = make_service(identity_provider, clock)

    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)

    assert caplog.records
    assert SF_ACCESS_TOKEN not in caplog.text
    assert mask_token(SF_ACCESS_TOKEN) in caplog.text


@pytest.mark.asyncio
async def test_invalidate_and_clear_cache(identity_provider, clock):
    service = make_service(identity_provider, clock)
    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)

    service.invalidate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    assert identity_provider.call_count == 2

    service.clear_cache()
    assert service.cache_size == 0


@pytest.mark.asyncio
async def test_cleanup_removes_only_expired_entries(identity_provider, clock):
    service = make_service(identity_provider, clock)
    await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)
    clock.advance(200)
    await service.validate_token("another-token-abcdefghijklmnopqrstuvwxyz", SF_INSTANCE_URL)

    clock.advance(100)
    assert service.cleanup_expired_tokens() == 1
    assert service.cache_size == 1


@pytest.mark.asyncio
async def test_auth_context_never_prints_token(identity_provider, clock):
    service = make_service(identity_provider, clock)
    auth = await service.validate_token(SF_ACCESS_TOKEN, SF_INSTANCE_URL)

    assert SF_ACCESS_TOKEN not in repr(auth)
    assert SF_ACCESS_TOKEN not in auth.model_dump_json()
    assert auth.masked_token == mask_token(SF_ACCESS_TOKEN)
    assert auth.to_tool_metadata() == {
        "accessToken": SF_ACCESS_TOKEN,
        "instanceUrl": SF_INSTANCE_URL,
        "userId": "005xx000001Sv6AAAS",
        "username": "jane@acme.example",
    }
    assert auth.user_info.rate_limit_key == "00Dxx0000001gPLEAY:005xx000001Sv6AAAS"


@pytest.mark.parametrize(
    "token",
    ["abcdefgh", "abcdefghijklmnop", SF_ACCESS_TOKEN, "x" * 4 + "SECRETMIDDLE" + "y" * 4],
)
def test_mask_token_hides_the_middle(token):
    masked = mask_token(token)
    assert masked.startswith(token[:4])
    assert masked.endswith(token[-4:])
    middle = token[4:-4]
    if middle:
        assert middle not in masked


@pytest.mark.parametrize("token", [None, "", "a", "abcdefg"])
def test_mask_token_short_tokens_are_redacted(token):
    assert mask_token(token) == REDACTED_TOKEN


def test_cache_key_uses_token_suffix_and_instance():
    key = derive_token_cache_key(SF_ACCESS_TOKEN, SF_INSTANCE_URL + "/")
    assert key == f"{SF_ACCESS_TOKEN[-20:]}:{SF_INSTANCE_URL}"
    assert SF_ACCESS_TOKEN not in key
