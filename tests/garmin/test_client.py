"""Tests for the GarminClient facade."""

import json

import pytest

from garmin.auth.auth_tokens import BearerCredential, SigningCredential
from garmin.client import GarminClient
from garmin.config import AuthConfig
from garmin.exceptions import RenewalFailedError
from garmin.models import ExportedCredentials
from shared_lib.baseclient.client import HttpxTransport
from shared_lib.baseclient.exceptions import ConfigurationError, HTTPError
from shared_lib.baseclient.types import HttpRequest, HttpResponse

SIGNING = SigningCredential(key="oauth1-token", secret="oauth1-secret")


def _bearer(token: str, issued_at: float) -> BearerCredential:
    return BearerCredential.issue(
        access_token=token,
        refresh_token="refresh",
        expires_in=3600,
        refresh_token_expires_in=7200,
        issued_at=issued_at,
    )


def _profile_url(wire) -> str:
    return f"{wire.urls.GC_API}/userprofile-service/socialProfile"


class TestConstruction:
    """Configuration is checked before anything touches the network."""

    def test_short_secret_rejected(self, server):
        with pytest.raises(ConfigurationError):
            GarminClient(AuthConfig(mfa_secret_key="too-short"), transport=server)

        assert server.requests == []

    def test_unknown_domain_rejected(self, server, wire):
        with pytest.raises(ConfigurationError):
            GarminClient(
                AuthConfig(mfa_secret_key=wire.secret_key, domain="example.com"),
                transport=server,
            )

    def test_china_domain_urls(self, server, wire):
        client = GarminClient(
            AuthConfig(mfa_secret_key=wire.secret_key, domain="garmin.cn"), transport=server
        )

        assert client.urls.SIGNIN_URL == "https://sso.garmin.cn/sso/signin"
        assert client.urls.OAUTH_URL == "https://connectapi.garmin.cn/oauth-service/oauth"

    @pytest.mark.asyncio
    async def test_default_transport_is_owned(self, auth_config):
        client = GarminClient(auth_config)

        assert isinstance(client.transport, HttpxTransport)

        await client.close()
        assert client.transport.client.is_closed

    @pytest.mark.asyncio
    async def test_injected_transport_is_not_closed(self, client, server):
        async with client:
            pass

        assert server.closed is False

    @pytest.mark.asyncio
    async def test_preset_consumer_is_used(self, server, wire, clock):
        config = AuthConfig(
            mfa_secret_key=wire.secret_key,
            consumer_key="preset-key",
            consumer_secret="preset-secret",
        )
        client = GarminClient(config, transport=server, clock=clock)

        await client.login("runner@example.com", "pw")

        assert server.requests_to("GET", "https://thegarth.s3.amazonaws.com/oauth_consumer.json") == []
        preauthorized = server.requests_to("GET", wire.urls.PREAUTHORIZED)[0]
        assert 'oauth_consumer_key="preset-key"' in preauthorized.headers["Authorization"]


class TestCredentials:
    """Export/restore of caller-owned credentials."""

    @pytest.mark.asyncio
    async def test_export_after_login(self, client):
        await client.login("runner@example.com", "pw")

        exported = client.export_credentials()

        assert exported.signing.key == "oauth1-token"
        assert exported.bearer.access_token == "access-1"
        assert ExportedCredentials.from_dict(json.loads(json.dumps(exported.to_dict()))) == exported

    @pytest.mark.asyncio
    async def test_restore_skips_login(self, client, server, wire, clock):
        server.route("GET", _profile_url(wire), wire.json_response({"displayName": "runner"}))
        client.restore_credentials(SIGNING, _bearer("restored", clock()))

        profile = await client.get(_profile_url(wire))

        assert profile == {"displayName": "runner"}
        assert len(server.requests) == 1
        assert server.requests[0].headers["Authorization"] == "Bearer restored"


class TestAuthorizedCalls:
    """JSON helpers and renewal through the facade."""

    @pytest.mark.asyncio
    async def test_get_with_params(self, client, server, wire, clock):
        url = f"{wire.urls.GC_API}/activitylist-service/activities/search/activities"
        server.route("GET", url, wire.json_response({"items": []}))
        client.restore_credentials(SIGNING, _bearer("token", clock()))

        result = await client.get(url, params={"start": 0, "limit": 20})

        assert result == {"items": []}
        request = server.requests[0]
        assert wire.query_of(request) == {"start": "0", "limit": "20"}
        assert request.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_and_put_send_json(self, client, server, wire, clock):
        url = f"{wire.urls.GC_API}/weight-service/user-weight"
        server.route("POST", url, wire.json_response({"ok": True}))
        server.route("PUT", url, wire.json_response({"ok": True}))
        client.restore_credentials(SIGNING, _bearer("token", clock()))

        await client.post(url, {"value": 70.5})
        await client.put(url, {"value": 71})

        post, put = server.requests
        assert json.loads(post.body) == {"value": 70.5}
        assert post.headers["Content-Type"] == "application/json"
        assert put.method == "PUT"
        assert json.loads(put.body) == {"value": 71}

    @pytest.mark.asyncio
    async def test_delete_is_tunnelled_through_post(self, client, server, wire, clock):
        url = f"{wire.urls.GC_API}/activity-service/activity/1"
        server.route("POST", url, HttpResponse(status=204))
        client.restore_credentials(SIGNING, _bearer("token", clock()))

        result = await client.delete(url)

        assert result is None
        request = server.requests[0]
        assert request.method == "POST"
        assert request.headers["X-Http-Method-Override"] == "DELETE"
        assert request.body is None

    @pytest.mark.asyncio
    async def test_non_json_body_is_returned_as_text(self, client, server, wire, clock):
        url = f"{wire.urls.GC_API}/plain"
        server.route("GET", url, wire.html("plain text"))
        client.restore_credentials(SIGNING, _bearer("token", clock()))

        assert await client.get(url) == "plain text"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, client, server, wire, clock):
        server.route("GET", _profile_url(wire), wire.json_response({"error": "x"}, status=404))
        client.restore_credentials(SIGNING, _bearer("token", clock()))

        with pytest.raises(HTTPError) as exc_info:
            await client.get(_profile_url(wire))

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_common_headers(self, client, server, wire, clock):
        server.route("GET", _profile_url(wire), wire.json_response({}))
        client.restore_credentials(SIGNING, _bearer("token", clock()))
        client.set_common_headers({"NK": "NT", "DI-Backend": "connectapi.garmin.com"})

        await client.get(_profile_url(wire), headers={"NK": "override"})

        request = server.requests[0]
        assert request.headers["NK"] == "override"
        assert request.headers["DI-Backend"] == "connectapi.garmin.com"

    @pytest.mark.asyncio
    async def test_authorized_call_returns_raw_response(self, client, server, wire, clock):
        server.route("GET", _profile_url(wire), wire.html("teapot", status=418))
        client.restore_credentials(SIGNING, _bearer("token", clock()))

        response = await client.authorized_call(HttpRequest("GET", _profile_url(wire)))

        assert response.status == 418
        assert response.body == "teapot"

    @pytest.mark.asyncio
    async def test_unauthorized_call_renews_and_retries(self, client, server, wire):
        def profile(request: HttpRequest) -> HttpResponse:
            if request.headers.get("Authorization") == "Bearer access-2":
                return wire.json_response({"displayName": "runner"})
            return wire.html("expired", status=401)

        server.route("GET", _profile_url(wire), profile)
        await client.login("runner@example.com", "pw")

        result = await client.get(_profile_url(wire))

        assert result == {"displayName": "runner"}
        assert server.exchange_count == 2
        assert len(server.requests_to("GET", wire.urls.PREAUTHORIZED)) == 1
        exported = client.export_credentials()
        assert exported.signing.key == "oauth1-token"
        assert exported.bearer.access_token == "access-2"

    @pytest.mark.asyncio
    async def test_renewal_failure(self, client, server, wire):
        server.route("GET", _profile_url(wire), wire.html("expired", status=401))
        await client.login("runner@example.com", "pw")
        server.route("POST", wire.urls.EXCHANGE, wire.html("denied", status=401))

        with pytest.raises(RenewalFailedError):
            await client.get(_profile_url(wire))

    @pytest.mark.asyncio
    async def test_ensure_fresh(self, client, server, clock):
        await client.login("runner@example.com", "pw")

        clock.advance(3600)
        bearer = await client.ensure_fresh()

        assert bearer.access_token == "access-2"
        assert bearer.issued_at == clock()
        assert server.exchange_count == 2
