from . import kinds, log
from .config import DEFAULT_HTTP_TIMEOUT
from .providers import (
    BitbucketCloudProvider,
    BitbucketServerProvider,
    FakeProvider,
    GerritProvider,
    GiteaProvider,
    GitHubProvider,
    GitlabProvider,
)

PROVIDERS = {
    kinds.GITHUB: GitHubProvider,
    kinds.GITLAB: GitlabProvider,
    kinds.GITEA: GiteaProvider,
    kinds.BITBUCKET_CLOUD: BitbucketCloudProvider,
    kinds.BITBUCKET_SERVER: BitbucketServerProvider,
    kinds.GERRIT: GerritProvider,
    kinds.FAKE: FakeProvider,
}


def get_provider_class(kind):
    """Unset or unknown kinds fall back to GitHub."""
    provider_class = PROVIDERS.get(kind)
    if provider_class is None:
        if kind:
            log.warn(f"Unknown git provider kind '{kind}', falling back to {kinds.GITHUB}")
        return GitHubProvider
    return provider_class


def create_provider(kind, server, user_auth, client=None, poller=None, http_timeout=DEFAULT_HTTP_TIMEOUT):
    """
    Factory to get the correct GitProvider instance.
    Construction errors propagate unchanged.
    """
    provider_class = get_provider_class(kind)
    log.debug(f"Using {provider_class.__name__} for {server.url} as {user_auth.username or '<bearer token>'}")
    return provider_class(server, user_auth, client=client, poller=poller, http_timeout=http_timeout)
