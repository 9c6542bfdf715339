import pytest

from gitforge import kinds
from gitforge.auth import AuthConfig, AuthConfigService, MemoryConfigSaver, UserAuth
from gitforge.auth.prompts import BatchPrompter
from gitforge.auth.resolver import (
    CredentialResolver,
    create_provider_for_url,
    environment_prefixes,
    user_auth_from_environment,
)
from gitforge.errors import BatchModeError, ConfigError, CredentialError, NoCredentialsError
from gitforge.providers import GiteaProvider, GitHubProvider, GitlabProvider

from conftest import ScriptedPrompter

URL = "https://github.example"


def make_service(*users, kind=kinds.UNSET, url=URL):
    config = AuthConfig()
    for user in users:
        config.set_user_auth(url, user)
    if kind:
        config.set_server_kind(url, kind)
    return AuthConfigService(MemoryConfigSaver(config), config)


def test_stored_credential_resolves_without_prompting():
    service = make_service(UserAuth("alice", "tok"))
    prompter = ScriptedPrompter()
    provider = CredentialResolver(service, prompter=prompter, environ={}).resolve(
        URL, kind=kinds.GITHUB, username="alice")

    assert isinstance(provider, GitHubProvider)
    assert provider.kind() == "github"
    assert provider.current_username() == "alice"
    assert provider.server_url() == URL
    assert prompter.questions == []


def test_explicit_username_wins_over_current_user():
    service = make_service(UserAuth("alice", "a"), UserAuth("bob", "b"))
    provider = CredentialResolver(service, environ={}).resolve(URL, kind=kinds.GITHUB, username="alice")
    assert provider.user_auth().api_token == "a"


def test_unknown_explicit_username_is_prompted_for():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    prompter = ScriptedPrompter(["bobtoken"])
    provider = CredentialResolver(service, prompter=prompter, environ={}).resolve(
        URL, kind=kinds.GITHUB, username="bob")

    assert provider.current_username() == "bob"
    assert provider.user_auth().api_token == "bobtoken"
    assert len(prompter.questions) == 1
    assert service.saver.load_config().find_user_auth(URL, "bob").api_token == "bobtoken"


def test_unknown_explicit_username_fails_in_batch_mode():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    with pytest.raises(NoCredentialsError):
        CredentialResolver(service, environ={}).resolve(URL, username="bob", batch_mode=True)


def test_unknown_explicit_username_ignores_other_users_in_cluster():
    service = make_service(kind=kinds.GITHUB)
    service.save_user_auth(URL, UserAuth("pipeline", "p"))
    with pytest.raises(NoCredentialsError):
        CredentialResolver(service, environ={}).resolve(URL, username="bob", batch_mode=True, in_cluster=True)


def test_unknown_explicit_username_uses_matching_environment():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    resolver = CredentialResolver(service, environ={"GITHUB_USERNAME": "bob", "GITHUB_API_TOKEN": "envtok"})
    assert resolver.resolve(URL, username="bob", batch_mode=True).user_auth().api_token == "envtok"

    other = CredentialResolver(service, environ={"GITHUB_USERNAME": "carol", "GITHUB_API_TOKEN": "envtok"})
    with pytest.raises(NoCredentialsError):
        other.resolve(URL, username="bob", batch_mode=True)


def test_single_stored_user_is_used():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITLAB)
    provider = CredentialResolver(service, prompter=ScriptedPrompter(), environ={}).resolve(URL)
    assert isinstance(provider, GitlabProvider)
    assert provider.current_username() == "alice"


def test_single_stored_user_confirmation_is_opt_in():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    prompter = ScriptedPrompter([True])
    resolver = CredentialResolver(service, prompter=prompter, environ={}, confirm_single_user=True)
    assert resolver.resolve(URL).current_username() == "alice"
    assert len(prompter.questions) == 1


def test_current_user_is_used_when_several_are_stored():
    service = make_service(UserAuth("alice", "a"), UserAuth("bob", "b"), kind=kinds.GITHUB)
    provider = CredentialResolver(service, prompter=ScriptedPrompter(), environ={}).resolve(URL, batch_mode=True)
    assert provider.current_username() == "bob"


def test_several_users_without_current_fail_in_batch_mode():
    service = make_service(UserAuth("alice", "a"), UserAuth("bob", "b"), kind=kinds.GITHUB)
    service.config._server(URL).current_user = ""
    with pytest.raises(CredentialError):
        CredentialResolver(service, environ={}).resolve(URL, batch_mode=True)


def test_several_users_without_current_are_picked_interactively():
    service = make_service(UserAuth("alice", "a"), UserAuth("bob", "b"), kind=kinds.GITHUB)
    service.config._server(URL).current_user = ""
    prompter = ScriptedPrompter(["alice"])
    provider = CredentialResolver(service, prompter=prompter, environ={}).resolve(URL)
    assert provider.current_username() == "alice"


def test_pipeline_user_is_used_in_cluster():
    service = make_service(kind=kinds.GITHUB)
    service.save_user_auth(URL, UserAuth("pipeline", "p"))
    service.save_user_auth(URL, UserAuth("human", "h"))
    provider = CredentialResolver(service, environ={}).resolve(URL, batch_mode=True, in_cluster=True)
    assert provider.current_username() == "pipeline"


def test_environment_credentials_for_kind():
    service = make_service(kind=kinds.GITLAB)
    environ = {"GITLAB_USERNAME": "envuser", "GITLAB_API_TOKEN": "envtok", "GIT_USERNAME": "other"}
    provider = CredentialResolver(service, environ=environ).resolve(URL, batch_mode=True)
    assert provider.current_username() == "envuser"
    assert provider.user_auth().api_token == "envtok"
    # environment credentials are not written to the store
    assert service.config.find_user_auths(URL) == []


def test_generic_environment_fallback():
    service = make_service(kind=kinds.GITEA)
    environ = {"GIT_BEARER_TOKEN": "bearer"}
    provider = CredentialResolver(service, environ=environ).resolve(URL, batch_mode=True)
    assert isinstance(provider, GiteaProvider)
    assert provider.user_auth().bearer_token == "bearer"


def test_incomplete_environment_credentials_are_skipped():
    service = make_service(kind=kinds.GITLAB)
    environ = {"GITLAB_USERNAME": "half", "GIT_USERNAME": "full", "GIT_API_TOKEN": "tok"}
    provider = CredentialResolver(service, environ=environ).resolve(URL, batch_mode=True)
    assert provider.current_username() == "full"


def test_stored_credentials_win_over_environment():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    environ = {"GITHUB_USERNAME": "envuser", "GITHUB_API_TOKEN": "envtok"}
    provider = CredentialResolver(service, environ=environ).resolve(URL)
    assert provider.current_username() == "alice"


def test_batch_mode_without_credentials_fails():
    service = make_service(kind=kinds.GITHUB)
    with pytest.raises(NoCredentialsError) as e:
        CredentialResolver(service, environ={}).resolve(URL, batch_mode=True)
    assert e.value.server_url == URL


def test_prompted_credentials_are_saved():
    service = make_service(kind=kinds.GITHUB)
    prompter = ScriptedPrompter(["alice", "secret"])
    provider = CredentialResolver(service, prompter=prompter, environ={}).resolve(URL)

    assert provider.current_username() == "alice"
    saved = service.saver.load_config()
    assert saved.find_user_auth(URL, "alice").api_token == "secret"
    assert saved.pipeline_username == "alice"
    assert saved.current_server == URL


def test_prompted_credentials_use_given_username():
    service = make_service(kind=kinds.GITHUB)
    prompter = ScriptedPrompter(["secret"])
    provider = CredentialResolver(service, prompter=prompter, environ={}).resolve(URL, username="dave")
    assert provider.current_username() == "dave"
    assert len(prompter.questions) == 1


def test_explicit_kind_is_sticky():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    provider = CredentialResolver(service, environ={}).resolve(URL, kind=kinds.GITEA)
    assert isinstance(provider, GiteaProvider)
    assert service.config.get_server(URL).kind == kinds.GITEA
    assert service.saver.load_config().get_server(URL).kind == kinds.GITEA


def test_kind_inferred_from_well_known_host():
    service = make_service(UserAuth("alice", "tok"), url="https://gitlab.com")
    provider = CredentialResolver(service, environ={}).resolve("gitlab.com/")
    assert isinstance(provider, GitlabProvider)
    assert provider.server_url() == "https://gitlab.com"


def test_unknown_kind_falls_back_to_github():
    service = make_service(UserAuth("alice", "tok"))
    provider = CredentialResolver(service, environ={}).resolve(URL)
    assert isinstance(provider, GitHubProvider)


def test_invalid_url_is_rejected():
    with pytest.raises(ConfigError):
        CredentialResolver(make_service(), environ={}).resolve("")


def test_batch_prompter_is_used_in_batch_mode():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    resolver = CredentialResolver(service, prompter=ScriptedPrompter(), environ={}, confirm_single_user=True)
    # confirmation is skipped in batch mode
    assert resolver.resolve(URL, batch_mode=True).current_username() == "alice"
    with pytest.raises(BatchModeError):
        resolver.prompt_user_auth(URL, kinds.GITHUB, "", BatchPrompter())


def test_create_provider_for_url():
    service = make_service(UserAuth("alice", "tok"), kind=kinds.GITHUB)
    provider = create_provider_for_url(service, URL, environ={})
    assert provider.current_username() == "alice"


def test_user_auth_from_environment():
    assert user_auth_from_environment("GIT", {}) is None
    assert user_auth_from_environment("GIT", {"GIT_USERNAME": "u", "GIT_API_TOKEN": "t"}) == UserAuth("u", "t")


def test_environment_prefixes():
    assert environment_prefixes(kinds.GITLAB) == ["GITLAB", "GIT"]
    assert environment_prefixes(kinds.UNSET) == ["GIT"]
