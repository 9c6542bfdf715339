"""Backend kind tags and the helpers that infer them from a URL."""
from urllib.parse import urlparse

GITHUB = "github"
GITLAB = "gitlab"
GITEA = "gitea"
BITBUCKET_CLOUD = "bitbucketcloud"
BITBUCKET_SERVER = "bitbucketserver"
GERRIT = "gerrit"
FAKE = "fake"
UNSET = ""

ALL_KINDS = [GITHUB, GITLAB, GITEA, BITBUCKET_CLOUD, BITBUCKET_SERVER, GERRIT, FAKE]

# hosts whose kind and display name can be inferred without asking
WELL_KNOWN_HOSTS = {
    "github.com": ("GitHub", GITHUB),
    "gitlab.com": ("GitLab", GITLAB),
    "bitbucket.org": ("Bitbucket", BITBUCKET_CLOUD),
}


def url_host(url):
    if not url:
        return ""
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return (parsed.hostname or "").lower()


def well_known(url):
    """Return (name, kind) for a well known host or ("", "")."""
    return WELL_KNOWN_HOSTS.get(url_host(url), ("", UNSET))


def kind_from_url(url):
    return well_known(url)[1]


def env_prefix(kind):
    return kind.upper() if kind else "GIT"


def is_valid_kind(kind):
    return kind in ALL_KINDS
