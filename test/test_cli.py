from unittest.mock import patch

import pytest
from click.testing import CliRunner

from gitforge import kinds
from gitforge.auth import UserAuth
from gitforge.main import cli
from gitforge.providers.fake import FakeProvider

from conftest import ScriptedPrompter

URL = "https://github.example"
FAKE_URL = "https://fake.example"


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, service, args, prompter=None):
    obj = {"service": service}
    if prompter is not None:
        obj["prompter"] = prompter
    return runner.invoke(cli, args, obj=obj, env={"KUBERNETES_SERVICE_HOST": None, "GIT_SERVER": None})


def test_auth_add_in_batch_mode(runner, service, saver):
    result = invoke(runner, service, [
        "--batch-mode", "auth", "add", "--server", URL + "/", "--kind", "gitea", "--name", "Example",
        "--username", "alice", "--api-token", "tok",
    ])
    assert result.exit_code == 0, result.output
    stored = saver.load_config()
    assert stored.find_user_auth(URL, "alice").api_token == "tok"
    assert stored.get_server(URL).kind == kinds.GITEA
    assert stored.get_server(URL).name == "Example"
    assert stored.pipeline_username == "alice"


def test_auth_add_in_batch_mode_needs_a_token(runner, service):
    result = invoke(runner, service, ["--batch-mode", "auth", "add", "--server", URL, "--username", "alice"])
    assert result.exit_code == 1
    assert "did not properly define the user authentication" in result.output


def test_auth_add_prompts_for_missing_values(runner, service):
    prompter = ScriptedPrompter(["alice", "secret"])
    result = invoke(runner, service, ["auth", "add", "--server", URL], prompter=prompter)
    assert result.exit_code == 0, result.output
    assert service.config.find_user_auth(URL, "alice").api_token == "secret"


def test_auth_list(runner, service):
    service.save_user_auth(URL, UserAuth("alice", "a"))
    service.save_user_auth(URL, UserAuth("bob", "b"))
    result = invoke(runner, service, ["auth", "list"])
    assert result.exit_code == 0
    assert f"* {URL} [unknown]" in result.output
    assert "alice" in result.output
    assert "bob (current)" in result.output


def test_auth_list_empty(runner, service):
    result = invoke(runner, service, ["auth", "list"])
    assert "No git servers are configured." in result.output


def test_auth_show_masks_secrets(runner, service):
    service.save_user_auth(URL, UserAuth("alice", "very-secret-token"))
    result = invoke(runner, service, ["auth", "show"])
    assert result.exit_code == 0
    assert "very-secret-token" not in result.output
    assert "apitoken: '****'" in result.output
    assert "username: alice" in result.output


def test_auth_delete_user(runner, service):
    service.save_user_auth(URL, UserAuth("alice", "a"))
    service.save_user_auth(URL, UserAuth("bob", "b"))
    result = invoke(runner, service, ["auth", "delete", "--server", URL, "--username", "bob"])
    assert result.exit_code == 0, result.output
    assert service.config.get_server(URL).usernames() == ["alice"]


def test_auth_delete_server_in_batch_mode(runner, service):
    service.save_user_auth(URL, UserAuth("alice", "a"))
    result = invoke(runner, service, ["--batch-mode", "auth", "delete", "--server", URL])
    assert result.exit_code == 0, result.output
    assert not service.config.has_server(URL)


def test_auth_delete_server_can_be_aborted(runner, service):
    service.save_user_auth(URL, UserAuth("alice", "a"))
    result = invoke(runner, service, ["auth", "delete", "--server", URL], prompter=ScriptedPrompter([False]))
    assert "Aborted." in result.output
    assert service.config.has_server(URL)


def test_auth_delete_unknown_server(runner, service):
    result = invoke(runner, service, ["--batch-mode", "auth", "delete", "--server", URL])
    assert result.exit_code == 1
    assert f"No git server {URL} is configured" in result.output


def test_repo_validate_with_stored_credentials(runner, service):
    service.save_user_auth(FAKE_URL, UserAuth("alice", "tok"))
    result = invoke(runner, service, [
        "--batch-mode", "repo", "validate", "--server", FAKE_URL, "--kind", "fake", "--org", "acme", "--name", "widgets",
    ])
    assert result.exit_code == 0, result.output
    assert "Repository name acme/widgets is available" in result.output
    # the explicit kind is remembered
    assert service.config.get_server(FAKE_URL).kind == kinds.FAKE


def test_repo_commands_fail_without_credentials_in_batch_mode(runner, service):
    result = invoke(runner, service, ["--batch-mode", "repo", "validate", "--server", URL, "--name", "widgets"],)
    assert result.exit_code == 1
    assert f"no credentials available for server {URL}" in result.output


def test_repo_list(runner, service):
    fake = FakeProvider.with_repositories({"acme": ["widgets", "gadgets", "docs"]})
    with patch("gitforge.commands.repo.resolve_provider", return_value=fake):
        result = invoke(runner, service, ["repo", "list", "--org", "acme", "--filter", "ets"])
    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert [line.split("\t")[0] for line in lines] == ["acme/gadgets", "acme/widgets"]


def test_repo_create_with_webhook(runner, service):
    fake = FakeProvider()
    with patch("gitforge.commands.repo.resolve_provider", return_value=fake):
        result = invoke(runner, service, [
            "--batch-mode", "repo", "create", "--org", "acme", "--name", "widgets",
            "--webhook-url", "https://ci.example/hook",
        ])
    assert result.exit_code == 0, result.output
    assert "Created repository acme/widgets" in result.output
    assert [h.url for h in fake.list_webhooks("acme", "widgets")] == ["https://ci.example/hook"]


def test_repo_create_batch_mode_defaults(runner, service):
    fake = FakeProvider()
    with patch("gitforge.commands.repo.resolve_provider", return_value=fake):
        result = invoke(runner, service, ["--batch-mode", "repo", "create"])
    assert result.exit_code == 0, result.output
    assert fake.get_repository("", "dummy").full_name == "fake-user/dummy"


def test_repo_create_refuses_existing_repository(runner, service):
    fake = FakeProvider.with_repositories({"acme": ["widgets"]})
    with patch("gitforge.commands.repo.resolve_provider", return_value=fake):
        result = invoke(runner, service, ["--batch-mode", "repo", "create", "--org", "acme", "--name", "widgets"])
    assert result.exit_code == 1
    assert "repository acme/widgets already exists" in result.output


def test_repo_create_asks_for_owner_and_name(runner, service):
    fake = FakeProvider.with_repositories({"acme": ["widgets"]})
    prompter = ScriptedPrompter(["acme", "fresh"])
    with patch("gitforge.commands.repo.resolve_provider", return_value=fake):
        result = invoke(runner, service, ["repo", "create"], prompter=prompter)
    assert result.exit_code == 0, result.output
    assert fake.get_repository("acme", "fresh").name == "fresh"
