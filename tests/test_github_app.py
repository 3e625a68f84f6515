import jwt
import pytest

from common.github_app import (
    AppCredentialSigner,
    GitHubAPIError,
    GitHubAppClient,
    GitHubAppConfigError,
    GitHubAppNotInstalledError,
    GitHubAppService,
)
from tests.fakes import FakeClock, FakeGitHubAppAPI

DAY = 24 * 60 * 60


class TestAppCredentialSigner:
    def test_assertion_lifetime_is_600_seconds(self, rsa_keys):
        private_pem, public_pem = rsa_keys
        signer = AppCredentialSigner("12345", private_pem, clock=FakeClock(1_700_000_000))

        assertion = signer.sign()
        claims = jwt.decode(
            assertion.token,
            public_pem,
            algorithms=["RS256"],
            options={"verify_exp": False, "verify_iat": False},
        )

        assert claims["iss"] == "12345"
        assert claims["iat"] == 1_700_000_000
        assert claims["exp"] - claims["iat"] == 600
        assert assertion.expires_at - assertion.issued_at == 600

    def test_each_sign_uses_current_time(self, rsa_keys):
        clock = FakeClock()
        signer = AppCredentialSigner("12345", rsa_keys[0], clock=clock)

        first = signer.sign()
        clock.advance(30)
        second = signer.sign()

        assert second.issued_at == first.issued_at + 30
        assert second.token != first.token

    @pytest.mark.parametrize("app_id,key", [("", "key"), ("12345", ""), (None, None)])
    def test_missing_credentials_raise_config_error(self, app_id, key):
        signer = AppCredentialSigner(app_id, key)
        assert not signer.is_configured
        with pytest.raises(GitHubAppConfigError):
            signer.sign()

    def test_redacted_config_hides_values(self, rsa_keys):
        signer = AppCredentialSigner("12345", rsa_keys[0])
        assert signer.redacted_config() == {"app_id": "configured", "private_key": "configured"}
        assert AppCredentialSigner(None, None).redacted_config() == {
            "app_id": "missing",
            "private_key": "missing",
        }


class TestInstallationResolver:
    @pytest.mark.asyncio
    async def test_one_lookup_per_owner_within_ttl(self, github_app, github_api, clock):
        first = await github_app.resolver.resolve("octo-org", "widgets")
        clock.advance(DAY - 1)
        second = await github_app.resolver.resolve("octo-org", "gadgets")

        assert first == second == 4242
        assert github_api.lookup_calls == [("octo-org", "widgets")]

    @pytest.mark.asyncio
    async def test_expired_entry_is_looked_up_again(self, github_app, github_api, clock):
        await github_app.resolver.resolve("octo-org", "widgets")
        clock.advance(DAY + 1)
        await github_app.resolver.resolve("octo-org", "widgets")

        assert len(github_api.lookup_calls) == 2

    @pytest.mark.asyncio
    async def test_owner_key_is_case_insensitive(self, github_app, github_api):
        await github_app.resolver.resolve("Octo-Org", "widgets")
        await github_app.resolver.resolve("octo-org", "widgets")

        assert len(github_api.lookup_calls) == 1
        assert [e.key for e in github_app.resolver.stats().entries] == ["octo-org"]

    @pytest.mark.asyncio
    async def test_invalidate_forces_lookup(self, github_app, github_api):
        await github_app.resolver.resolve("octo-org", "widgets")
        github_app.resolver.invalidate("octo-org")
        await github_app.resolver.resolve("octo-org", "widgets")

        assert len(github_api.lookup_calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate_all_empties_cache(self, github_app, github_api):
        github_api.installations["acme"] = 7
        await github_app.resolver.resolve("octo-org", "widgets")
        await github_app.resolver.resolve("acme", "rockets")
        assert github_app.resolver.stats().size == 2

        github_app.resolver.invalidate_all()

        assert github_app.resolver.stats().size == 0

    @pytest.mark.asyncio
    async def test_stats_report_expiry(self, github_app, clock):
        await github_app.resolver.resolve("octo-org", "widgets")

        stats = github_app.resolver.stats()

        assert stats.size == 1
        assert stats.entries[0].key == "octo-org"
        assert stats.entries[0].expires_at.startswith("2023-11-15T22:13:20")

    @pytest.mark.asyncio
    async def test_not_installed_is_raised_and_not_cached(self, github_app, github_api):
        with pytest.raises(GitHubAppNotInstalledError) as exc_info:
            await github_app.resolver.resolve("stranger", "repo")
        assert exc_info.value.owner == "stranger"

        github_api.installations["stranger"] = 99
        assert await github_app.resolver.resolve("stranger", "repo") == 99
        assert len(github_api.lookup_calls) == 2

    @pytest.mark.asyncio
    async def test_other_failures_are_api_errors(self, rsa_keys, clock):
        api = FakeGitHubAppAPI(lookup_status=500)
        signer = AppCredentialSigner("12345", rsa_keys[0])
        service = GitHubAppService(
            signer, app_client=GitHubAppClient(signer, transport=api.transport), clock=clock
        )

        with pytest.raises(GitHubAPIError) as exc_info:
            await service.resolver.resolve("octo-org", "widgets")

        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, GitHubAppNotInstalledError)
        assert service.resolver.stats().size == 0

    @pytest.mark.asyncio
    async def test_unconfigured_app_raises_config_error(self, github_api):
        signer = AppCredentialSigner(None, None)
        service = GitHubAppService(signer, app_client=GitHubAppClient(signer, transport=github_api.transport))

        with pytest.raises(GitHubAppConfigError):
            await service.resolver.resolve("octo-org", "widgets")
        assert github_api.lookup_calls == []


class TestInstallationTokenExchanger:
    @pytest.mark.asyncio
    async def test_exchange_returns_installation_token(self, github_app, github_api):
        token = await github_app.exchanger.exchange(4242)

        assert token == "ghs_token_4242"
        assert github_api.token_calls == [4242]

    @pytest.mark.asyncio
    async def test_every_request_carries_a_bearer_assertion(self, github_app, github_api):
        await github_app.exchanger.exchange(4242)
        await github_app.exchanger.exchange(4242)

        assert github_api.token_calls == [4242, 4242]
        assert all(h.startswith("Bearer ") for h in github_api.auth_headers)

    @pytest.mark.asyncio
    async def test_rejected_exchange_raises(self, github_app):
        with pytest.raises(GitHubAPIError) as exc_info:
            await github_app.exchanger.exchange(1)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_token_for_repository(self, github_app, github_api):
        token = await github_app.token_for_repository("octo-org", "widgets")

        assert token == "ghs_token_4242"
        assert github_api.lookup_calls == [("octo-org", "widgets")]
        assert github_api.token_calls == [4242]
