import os
import stat

import pytest

from gitforge import kinds
from gitforge.auth import AuthConfig, AuthConfigService, FileConfigSaver, MemoryConfigSaver, UserAuth
from gitforge.auth.savers import config_from_dict, config_to_dict
from gitforge.errors import ConfigError, CredentialError

from conftest import ScriptedPrompter

URL = "https://github.example"


@pytest.mark.parametrize("username,api_token,bearer_token,invalid", [
    ("", "", "", True),
    ("alice", "", "", True),
    ("", "tok", "", True),
    ("alice", "tok", "", False),
    ("", "", "bearer", False),
    ("alice", "", "bearer", False),
    ("", "tok", "bearer", False),
    ("alice", "tok", "bearer", False),
])
def test_user_auth_is_invalid_truth_table(username, api_token, bearer_token, invalid):
    auth = UserAuth(username=username, api_token=api_token, bearer_token=bearer_token)
    assert auth.is_invalid() is invalid
    assert auth.is_valid() is not invalid


def test_get_or_create_server_registers_once():
    config = AuthConfig()
    first = config.get_or_create_server(URL)
    second = config.get_or_create_server(URL)
    assert first.url == second.url == URL
    assert config.server_urls() == [URL]


def test_get_or_create_server_infers_well_known_hosts():
    config = AuthConfig()
    server = config.get_or_create_server("https://github.com")
    assert server.kind == kinds.GITHUB
    assert server.name == "GitHub"
    assert config.get_or_create_server("https://gitlab.com").kind == kinds.GITLAB
    assert config.get_or_create_server("https://bitbucket.org").kind == kinds.BITBUCKET_CLOUD
    assert config.get_or_create_server(URL).kind == kinds.UNSET


def test_get_or_create_server_requires_url():
    with pytest.raises(ConfigError):
        AuthConfig().get_or_create_server("")


def test_get_or_create_server_name_keeps_existing():
    config = AuthConfig()
    config.get_or_create_server_name(URL, "Example", kinds.GITEA)
    server = config.get_or_create_server_name(URL, "Other", kinds.GITLAB)
    assert server.name == "Example"
    assert server.kind == kinds.GITEA


def test_lookups_return_copies():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))

    server = config.get_server(URL)
    server.name = "changed"
    server.users.append(UserAuth("mallory", "x"))
    auth = config.find_user_auth(URL, "alice")
    auth.api_token = "stolen"

    stored = config.get_server(URL)
    assert stored.name == ""
    assert stored.usernames() == ["alice"]
    assert config.find_user_auth(URL, "alice").api_token == "tok"


def test_set_user_auth_upserts():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "one"))
    config.set_user_auth(URL, UserAuth("alice", "two"))
    config.set_user_auth(URL, UserAuth("bob", "three"))

    users = config.find_user_auths(URL)
    assert [(u.username, u.api_token) for u in users] == [("alice", "two"), ("bob", "three")]
    assert config.get_server(URL).current_user == "bob"


def test_find_user_auth_without_username_needs_single_user():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))
    assert config.find_user_auth(URL).username == "alice"
    config.set_user_auth(URL, UserAuth("bob", "tok"))
    assert config.find_user_auth(URL) is None
    assert config.find_user_auth("https://unknown.example", "alice") is None


def test_get_or_create_user_auth_returns_blank_for_unknown_user():
    config = AuthConfig()
    auth = config.get_or_create_user_auth(URL, "carol")
    assert auth == UserAuth(username="carol")
    assert config.find_user_auths(URL) == []


def test_set_current_user_must_exist():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))
    config.set_user_auth(URL, UserAuth("bob", "tok"))
    config.set_current_user(URL, "alice")
    assert config.get_server(URL).current_user == "alice"
    with pytest.raises(CredentialError):
        config.set_current_user(URL, "nobody")


def test_delete_server_clears_current_server():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))
    config.set_current_server(URL)
    config.delete_server(URL)
    assert not config.has_server(URL)
    assert config.current_server == ""
    assert config.current_auth_server() is None


def test_delete_user_auth_clears_current_user():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))
    config.delete_user_auth(URL, "alice")
    server = config.get_server(URL)
    assert server.users == []
    assert server.current_user == ""


def test_pipeline_identity_first_writer_wins(service):
    service.save_user_auth(URL, UserAuth("alice", "tok"))
    service.save_user_auth("https://gitlab.example", UserAuth("bob", "tok"))

    config = service.config
    assert config.pipeline_server == URL
    assert config.pipeline_username == "alice"
    assert config.default_username == "bob"
    assert config.current_server == "https://gitlab.example"
    assert config.pipeline_user_auth(URL).username == "alice"
    assert config.pipeline_user_auth("https://gitlab.example") is None


def test_save_user_auth_persists(service, saver):
    service.save_user_auth(URL, UserAuth("alice", "tok"))
    assert saver.saves == 1
    assert saver.load_config().find_user_auth(URL, "alice").api_token == "tok"


class BrokenSaver(MemoryConfigSaver):
    def save_config(self, config):
        raise OSError("disk full")


def test_save_user_auth_rolls_back_on_failure():
    service = AuthConfigService(BrokenSaver())
    with pytest.raises(OSError):
        service.save_user_auth(URL, UserAuth("alice", "tok"))
    assert service.config.servers == []
    assert service.config.pipeline_username == ""


def test_save_server_sets_name_and_kind(service):
    server = service.save_server(URL, name="Example", kind=kinds.GITEA)
    assert server.name == "Example"
    assert server.kind == kinds.GITEA
    service.save_server(URL, kind=kinds.GITLAB)
    assert service.config.get_server(URL).name == "Example"
    assert service.config.get_server(URL).kind == kinds.GITLAB


def test_pick_server_user_auth_single_user_confirmed():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))
    prompter = ScriptedPrompter([True])
    auth = config.pick_server_user_auth(config.get_server(URL), "Which user?", prompter)
    assert auth.username == "alice"


def test_pick_server_user_auth_single_user_declined_asks_for_name():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))
    prompter = ScriptedPrompter([False, "bob"])
    auth = config.pick_server_user_auth(config.get_server(URL), "Which user?", prompter)
    assert auth == UserAuth(username="bob")


def test_pick_server_user_auth_many_users():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "a"))
    config.set_user_auth(URL, UserAuth("bob", "b"))
    auth = config.pick_server_user_auth(config.get_server(URL), "Which user?", ScriptedPrompter(["alice"]))
    assert auth.api_token == "a"
    with pytest.raises(CredentialError):
        config.pick_server_user_auth(config.get_server(URL), "Which user?", ScriptedPrompter(), batch_mode=True)


def test_pick_server_user_auth_no_users():
    config = AuthConfig()
    server = config.get_or_create_server(URL)
    assert config.pick_server_user_auth(server, "Which user?", ScriptedPrompter()) == UserAuth()
    with pytest.raises(CredentialError, match="has no user auths defined"):
        config.pick_server_user_auth(server, "Which user?", ScriptedPrompter(), batch_mode=True)


def test_pick_server():
    config = AuthConfig()
    with pytest.raises(ConfigError):
        config.pick_server("Which server?", ScriptedPrompter())
    config.get_or_create_server(URL)
    assert config.pick_server("Which server?", ScriptedPrompter()).url == URL
    config.get_or_create_server("https://gitlab.example")
    assert config.pick_server("Which server?", ScriptedPrompter(["https://gitlab.example"])).url == \
        "https://gitlab.example"


def test_edit_user_auth_prompts_for_missing_values():
    config = AuthConfig()
    prompter = ScriptedPrompter(["alice", "secret"])
    auth = config.edit_user_auth("Example", UserAuth(), "", False, False, prompter)
    assert auth == UserAuth(username="alice", api_token="secret")
    assert len(prompter.questions) == 2


def test_edit_user_auth_batch_mode_rejects_invalid():
    with pytest.raises(CredentialError, match="did not properly define"):
        AuthConfig().edit_user_auth("Example", UserAuth("alice"), "", False, True, ScriptedPrompter())


def test_config_dict_round_trip_uses_stored_keys():
    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok", "bearer"))
    config.set_server_kind(URL, kinds.GITEA)
    config.default_username = "alice"

    data = config_to_dict(config)
    assert data["servers"][0]["users"][0] == {"username": "alice", "apitoken": "tok", "bearertoken": "bearer"}
    assert data["servers"][0]["currentuser"] == "alice"
    assert data["defaultusername"] == "alice"
    assert config_from_dict(data) == config


def test_config_from_dict_ignores_unknown_keys():
    config = config_from_dict({"servers": [{"url": URL, "colour": "blue"}], "extra": 1})
    assert config.server_urls() == [URL]
    assert config.get_server(URL).users == []
    assert config_from_dict(None) == AuthConfig()


def test_file_saver_round_trip(tmp_path):
    path = tmp_path / "nested" / "gitAuth.yaml"
    saver = FileConfigSaver(str(path))
    assert saver.load_config() == AuthConfig()

    config = AuthConfig()
    config.set_user_auth(URL, UserAuth("alice", "tok"))
    config.current_server = URL
    saver.save_config(config)

    assert path.exists()
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
    assert "apitoken: tok" in path.read_text()
    assert saver.load_config() == config


def test_file_saver_requires_file_name():
    with pytest.raises(ConfigError, match="No filename defined!"):
        FileConfigSaver("").load_config()


def test_file_saver_rejects_non_mapping(tmp_path):
    path = tmp_path / "gitAuth.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        FileConfigSaver(str(path)).load_config()
