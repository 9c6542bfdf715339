"""Decide which credential to use for a git server and build the matching provider."""
import os

from .. import kinds, log
from ..config import DEFAULT_HTTP_TIMEOUT
from ..errors import CredentialError, NoCredentialsError
from ..provider_factory import create_provider, get_provider_class
from ..utils import normalize_server_url
from .config import UserAuth
from .prompts import BatchPrompter, ClickPrompter


def user_auth_from_environment(prefix, environ=None):
    """Read PREFIX_USERNAME, PREFIX_API_TOKEN and PREFIX_BEARER_TOKEN. Returns None when unset."""
    environ = os.environ if environ is None else environ
    auth = UserAuth(
        username=environ.get(f"{prefix}_USERNAME", ""),
        api_token=environ.get(f"{prefix}_API_TOKEN", ""),
        bearer_token=environ.get(f"{prefix}_BEARER_TOKEN", ""),
    )
    if not (auth.username or auth.api_token or auth.bearer_token):
        return None
    return auth


def environment_prefixes(kind):
    prefixes = []
    if kind:
        prefixes.append(kinds.env_prefix(kind))
    if kinds.env_prefix(kinds.UNSET) not in prefixes:
        prefixes.append(kinds.env_prefix(kinds.UNSET))
    return prefixes


class CredentialResolver:
    """
    Walks stored credentials, then the environment, then the user.

    service is an AuthConfigService whose store has already been loaded.
    """

    def __init__(self, service, prompter=None, environ=None, poller=None, confirm_single_user=False,
                 http_timeout=DEFAULT_HTTP_TIMEOUT):
        self.service = service
        self.prompter = prompter or ClickPrompter(err=True)
        self.environ = os.environ if environ is None else environ
        self.poller = poller
        self.http_timeout = http_timeout
        self.confirm_single_user = confirm_single_user

    @property
    def config(self):
        return self.service.config

    def resolve(self, host_url, kind=None, username=None, batch_mode=False, in_cluster=False):
        """Return a provider for host_url authenticated with the chosen credential."""
        url = normalize_server_url(host_url)
        server = self.config.get_or_create_server(url)
        if kind and server.kind != kind:
            log.debug(f"setting the kind of {url} to {kind}")
            self.service.save_server_kind(url, kind)
        effective_kind = kind or server.kind or kinds.kind_from_url(url)

        prompter = BatchPrompter() if batch_mode else self.prompter
        auth = self.stored_user_auth(url, username, batch_mode, in_cluster, prompter)
        if auth is None:
            auth = self.environment_user_auth(effective_kind, username)
        if auth is None:
            if batch_mode:
                raise NoCredentialsError(url)
            auth = self.prompt_user_auth(url, effective_kind, username, prompter)

        if auth.is_invalid():
            raise CredentialError()
        return create_provider(effective_kind, self.config.get_or_create_server(url), auth, poller=self.poller,
                               http_timeout=self.http_timeout)

    def stored_user_auth(self, url, username, batch_mode, in_cluster, prompter):
        if username:
            # an explicit user is never swapped for another stored credential
            return self.config.find_user_auth(url, username)
        if in_cluster:
            pipeline = self.config.pipeline_user_auth(url)
            if pipeline is not None:
                return pipeline
        users = self.config.find_user_auths(url)
        if not users:
            return None
        if len(users) == 1:
            auth = users[0]
            if self.confirm_single_user and not batch_mode:
                server = self.config.get_server(url)
                if not prompter.confirm(f"Do you wish to use {auth.username} as the user name for {server.label()}",
                                        True):
                    return None
            return auth
        server = self.config.get_server(url)
        for auth in users:
            if auth.username == server.current_user:
                return auth
        if batch_mode:
            raise CredentialError(
                f"Server {server.label()} has {len(users)} user auths defined and none is current; "
                "pick one explicitly in batch mode")
        return self.config.pick_server_user_auth(server, f"Which user for {server.label()}?", prompter)

    def environment_user_auth(self, kind, username=None):
        for prefix in environment_prefixes(kind):
            auth = user_auth_from_environment(prefix, self.environ)
            if auth is None:
                continue
            if username and auth.username and auth.username != username:
                log.debug(f"ignoring {prefix}_* credentials for {auth.username}, {username} was asked for")
                continue
            if auth.is_invalid():
                log.warn(f"ignoring incomplete {prefix}_* credentials from the environment")
                continue
            log.debug(f"using {prefix}_* credentials from the environment")
            return auth
        return None

    def prompt_user_auth(self, url, kind, username, prompter):
        server = self.config.get_server(url)
        token_url = self._access_token_url(kind, server)
        if token_url:
            log.info(f"To generate an API token for {server.label()} visit: {log.color_info(token_url)}")
        auth = self.config.edit_user_auth(
            server.label(),
            UserAuth(username=username or ""),
            self.config.default_username,
            False,
            False,
            prompter,
        )
        self.service.save_user_auth(url, auth)
        return auth

    def _access_token_url(self, kind, server):
        return get_provider_class(kind).token_url_for(server)


def create_provider_for_url(service, host_url, kind=None, username=None, batch_mode=False, in_cluster=False,
                            prompter=None, environ=None, poller=None, http_timeout=DEFAULT_HTTP_TIMEOUT):
    resolver = CredentialResolver(service, prompter=prompter, environ=environ, poller=poller,
                                  http_timeout=http_timeout)
    return resolver.resolve(host_url, kind=kind, username=username, batch_mode=batch_mode, in_cluster=in_cluster)
