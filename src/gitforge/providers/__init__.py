from .base import GitProvider
from .bitbucket_cloud import BitbucketCloudProvider
from .bitbucket_server import BitbucketServerProvider
from .fake import FakeProvider
from .gerrit import GerritProvider
from .gitea import GiteaProvider
from .github import GitHubProvider
from .gitlab import GitlabProvider

__all__ = [
    "GitProvider",
    "GitHubProvider",
    "GitlabProvider",
    "GiteaProvider",
    "BitbucketCloudProvider",
    "BitbucketServerProvider",
    "GerritProvider",
    "FakeProvider",
]
