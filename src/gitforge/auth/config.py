"""In-memory registry of git servers and the credentials stored for each of them.

Lookups hand back copies. The registry only changes through the named
mutation methods on AuthConfig, so callers can never edit it by accident.
"""
import copy
from dataclasses import dataclass, field
from typing import List

from .. import kinds
from ..errors import ConfigError, CredentialError


@dataclass
class UserAuth:
    username: str = ""
    api_token: str = ""
    bearer_token: str = ""

    def is_invalid(self):
        """A bearer token alone is enough; otherwise both username and API token are needed."""
        if self.bearer_token:
            return False
        return not (self.username and self.api_token)

    def is_valid(self):
        return not self.is_invalid()


@dataclass
class AuthServer:
    url: str = ""
    kind: str = kinds.UNSET
    name: str = ""
    users: List[UserAuth] = field(default_factory=list)
    current_user: str = ""

    def label(self):
        return self.name or self.url

    def description(self):
        if self.name:
            return f"{self.name} at {self.url}"
        return self.url

    def find_user(self, username):
        for user in self.users:
            if user.username == username:
                return user
        return None

    def usernames(self):
        return [u.username for u in self.users]


@dataclass
class AuthConfig:
    servers: List[AuthServer] = field(default_factory=list)
    default_username: str = ""
    current_server: str = ""
    pipeline_username: str = ""
    pipeline_server: str = ""

    def _server(self, url):
        for server in self.servers:
            if server.url == url:
                return server
        return None

    def _ensure_server(self, url):
        server = self._server(url)
        if server is None:
            if not url:
                raise ConfigError("no git server URL was given")
            name, kind = kinds.well_known(url)
            server = AuthServer(url=url, name=name, kind=kind)
            self.servers.append(server)
        return server

    def copy(self):
        return copy.deepcopy(self)

    # lookups

    def server_urls(self):
        return [s.url for s in self.servers]

    def has_server(self, url):
        return self._server(url) is not None

    def get_server(self, url):
        server = self._server(url)
        return copy.deepcopy(server) if server is not None else None

    def get_or_create_server(self, url):
        """Return a copy of the server, registering it first when it is unknown."""
        return copy.deepcopy(self._ensure_server(url))

    def get_or_create_server_name(self, url, name, kind):
        server = self._server(url)
        if server is None:
            if not url:
                raise ConfigError("no git server URL was given")
            server = AuthServer(url=url, name=name, kind=kind)
            self.servers.append(server)
        return copy.deepcopy(server)

    def current_auth_server(self):
        if not self.current_server:
            return None
        return self.get_server(self.current_server)

    def find_user_auths(self, url):
        server = self._server(url)
        if server is None:
            return []
        return copy.deepcopy(server.users)

    def find_user_auth(self, url, username=""):
        """
        Find a credential on a server.
        With no username the only credential is returned, provided there is exactly one.
        """
        server = self._server(url)
        if server is None:
            return None
        if not username:
            if len(server.users) == 1:
                return copy.deepcopy(server.users[0])
            return None
        user = server.find_user(username)
        return copy.deepcopy(user) if user is not None else None

    def get_or_create_user_auth(self, url, username):
        found = self.find_user_auth(url, username)
        if found is not None:
            return found
        return UserAuth(username=username)

    # mutations

    def set_user_auth(self, url, auth):
        """Insert or overwrite the credential for auth.username and make it the server's current user."""
        server = self._ensure_server(url)
        auth = copy.deepcopy(auth)
        for idx, user in enumerate(server.users):
            if user.username == auth.username:
                server.users[idx] = auth
                break
        else:
            server.users.append(auth)
        server.current_user = auth.username

    def set_server_kind(self, url, kind):
        self._ensure_server(url).kind = kind

    def set_server_name(self, url, name):
        self._ensure_server(url).name = name

    def set_current_user(self, url, username):
        server = self._ensure_server(url)
        if server.find_user(username) is None:
            raise CredentialError(f"Server {server.label()} has no user {username}")
        server.current_user = username

    def set_current_server(self, url):
        self._ensure_server(url)
        self.current_server = url

    def delete_server(self, url):
        """Remove a server; clear the current server if it pointed there."""
        self.servers = [s for s in self.servers if s.url != url]
        if self.current_server == url:
            self.current_server = ""

    def delete_user_auth(self, url, username):
        server = self._server(url)
        if server is None:
            return
        server.users = [u for u in server.users if u.username != username]
        if server.current_user == username:
            server.current_user = ""

    def set_pipeline_identity(self, url, username):
        """Record the pipeline server and user only when neither has been set before."""
        if not self.pipeline_username and not self.pipeline_server:
            self.pipeline_username = username
            self.pipeline_server = url

    def pipeline_user_auth(self, url):
        if self.pipeline_server != url or not self.pipeline_username:
            return None
        return self.find_user_auth(url, self.pipeline_username)

    # interactive helpers

    def pick_server(self, message, prompter):
        if not self.servers:
            raise ConfigError("no git servers are defined")
        if len(self.servers) == 1:
            return copy.deepcopy(self.servers[0])
        urls = self.server_urls()
        default = self.current_server if self.current_server in urls else urls[0]
        answer = prompter.select_one(message, urls, default)
        return self.get_server(answer)

    def pick_server_user_auth(self, server, message, prompter, batch_mode=False):
        """Let the user choose one of the credentials stored for a server."""
        users = self.find_user_auths(server.url)
        if len(users) == 1:
            auth = users[0]
            if batch_mode:
                return auth
            if prompter.confirm(f"Do you wish to use {auth.username} as the user name for {server.label()}", True):
                return auth
            username = prompter.prompt_text(f"{server.label()} user name:", "", _required("user name"))
            return self.get_or_create_user_auth(server.url, username)
        if len(users) > 1:
            if batch_mode:
                raise CredentialError(
                    f"Server {server.label()} has {len(users)} user auths defined; pick one explicitly in batch mode")
            names = [u.username for u in users]
            default = server.current_user if server.current_user in names else names[0]
            chosen = prompter.select_one(message, names, default)
            return self.find_user_auth(server.url, chosen)
        if batch_mode:
            raise CredentialError(f"Server {server.label()} has no user auths defined")
        return UserAuth()

    def edit_user_auth(self, server_label, auth, default_username, edit_user, batch_mode, prompter):
        """Fill in a credential interactively. Returns a new UserAuth."""
        auth = copy.deepcopy(auth)
        if batch_mode:
            if auth.is_invalid():
                raise CredentialError()
            return auth
        if edit_user or not auth.username:
            auth.username = prompter.prompt_text(
                f"{server_label} user name:", auth.username or default_username, _required("user name"))
        if not auth.api_token:
            auth.api_token = prompter.prompt_secret(f"API Token for {auth.username} on {server_label}:")
        if auth.is_invalid():
            raise CredentialError()
        return auth


def _required(what):
    def validate(value):
        if not value or not value.strip():
            return f"a {what} is required"
        return None
    return validate
