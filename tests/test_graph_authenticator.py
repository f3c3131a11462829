"""
Tests for the MSAL device-code authenticator, with MSAL's client faked out.
"""

import pytest

from eleva_availability.adapters import graph_authenticator as auth_module
from eleva_availability.adapters.graph_authenticator import GraphAuthenticator
from eleva_availability.domain.exceptions import AuthenticationError


class FakePublicClientApplication:
    """Stands in for msal.PublicClientApplication."""

    accounts = []
    silent_result = None
    flow = {"user_code": "ABC123", "verification_uri": "https://microsoft.com/devicelogin"}
    flow_result = {"access_token": "device-token"}

    def __init__(self, client_id, authority, token_cache):
        self.client_id = client_id
        self.authority = authority
        self.token_cache = token_cache
        self.device_flows = 0

    def get_accounts(self):
        return self.accounts

    def acquire_token_silent(self, scopes, account):
        return self.silent_result

    def initiate_device_flow(self, scopes):
        return self.flow

    def acquire_token_by_device_flow(self, flow):
        self.device_flows += 1
        return self.flow_result


@pytest.fixture
def fake_msal(monkeypatch):
    class App(FakePublicClientApplication):
        pass

    monkeypatch.setattr(auth_module.msal, "PublicClientApplication", App)
    return App


@pytest.fixture
def cache_file(tmp_path):
    return tmp_path / "token_cache.json"


class TestGraphAuthenticator:
    """Tests for token acquisition and the token cache."""

    @pytest.mark.parametrize("client_id,tenant_id", [("", "tenant"), ("client", ""), (None, None)])
    def test_missing_app_registration_is_rejected(self, client_id, tenant_id, cache_file):
        with pytest.raises(AuthenticationError, match="client_id and tenant_id"):
            GraphAuthenticator(client_id=client_id, tenant_id=tenant_id, cache_file=cache_file)

    def test_default_authority_uses_tenant(self, fake_msal, cache_file):
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        assert authenticator.app.authority == "https://login.microsoftonline.com/tenant"

    def test_cached_account_skips_device_flow(self, fake_msal, cache_file):
        fake_msal.accounts = [{"username": "ana@example.com"}]
        fake_msal.silent_result = {"access_token": "cached-token"}
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        assert authenticator.get_access_token() == "cached-token"
        assert authenticator.app.device_flows == 0

    def test_failed_silent_refresh_falls_back_to_device_flow(self, fake_msal, cache_file):
        fake_msal.accounts = [{"username": "ana@example.com"}]
        fake_msal.silent_result = {"error": "invalid_grant"}
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        assert authenticator.get_access_token() == "device-token"
        assert authenticator.app.device_flows == 1

    def test_force_refresh_uses_device_flow(self, fake_msal, cache_file):
        fake_msal.accounts = [{"username": "ana@example.com"}]
        fake_msal.silent_result = {"access_token": "cached-token"}
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        assert authenticator.get_access_token(force_refresh=True) == "device-token"

    def test_device_flow_that_cannot_start_raises(self, fake_msal, cache_file):
        fake_msal.flow = {"error_description": "AADSTS700016: application not found"}
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        with pytest.raises(AuthenticationError, match="application not found"):
            authenticator.get_access_token()

    def test_rejected_sign_in_raises(self, fake_msal, cache_file):
        fake_msal.flow_result = {"error": "authorization_declined", "error_description": "User declined"}
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        with pytest.raises(AuthenticationError, match="User declined"):
            authenticator.get_access_token()

    def test_changed_cache_is_written_owner_only(self, fake_msal, cache_file):
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)
        authenticator.cache.has_state_changed = True

        authenticator.get_access_token()

        assert cache_file.exists()
        assert cache_file.stat().st_mode & 0o777 == 0o600

    def test_unreadable_cache_is_ignored(self, fake_msal, cache_file):
        cache_file.write_text("not json", encoding="utf-8")

        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        assert authenticator.get_access_token() == "device-token"

    def test_clear_cache_removes_file(self, fake_msal, cache_file):
        cache_file.write_text("{}", encoding="utf-8")
        authenticator = GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=cache_file)

        authenticator.clear_cache()

        assert not cache_file.exists()
