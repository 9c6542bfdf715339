from abc import ABC, abstractmethod

from .. import kinds, log
from ..config import DEFAULT_HTTP_TIMEOUT
from ..errors import ApiError, NotImplementedForBackend, RepositoryExistsError
from ..retry import Poller
from .models import PENDING, filter_issues_closed_since


class GitProvider(ABC):
    """
    The operations every git hosting backend supports.

    Subclasses translate between vendor payloads and the records in
    providers.models. Each one sets KIND and a STATE_MAP that turns vendor
    commit status names into one of models.STATUS_STATES.
    """

    KIND = kinds.UNSET
    STATE_MAP = {}

    def __init__(self, server, user_auth, client=None, poller=None, http_timeout=DEFAULT_HTTP_TIMEOUT):
        self.server = server
        self._user_auth = user_auth
        self.poller = poller or Poller()
        self.http_timeout = http_timeout
        self.client = client if client is not None else self._make_client()

    @abstractmethod
    def _make_client(self):
        """Build the RestClient for this backend."""
        pass

    # identity

    def kind(self):
        return self.KIND

    def label(self):
        return self.server.label()

    def server_url(self):
        return self.server.url

    def current_username(self):
        return self._user_auth.username

    def user_auth(self):
        return self._user_auth

    @classmethod
    def token_url_for(cls, server):
        """Page where a user can create an API token for this kind of server."""
        return ""

    def access_token_url(self):
        return self.token_url_for(self.server)

    def is_github(self):
        return self.KIND == kinds.GITHUB

    def is_gitlab(self):
        return self.KIND == kinds.GITLAB

    def is_gitea(self):
        return self.KIND == kinds.GITEA

    def is_bitbucket_cloud(self):
        return self.KIND == kinds.BITBUCKET_CLOUD

    def is_bitbucket_server(self):
        return self.KIND == kinds.BITBUCKET_SERVER

    def is_gerrit(self):
        return self.KIND == kinds.GERRIT

    def has_issues(self):
        return True

    @classmethod
    def to_status_state(cls, vendor_state):
        """Map a vendor commit status name onto the canonical set."""
        if vendor_state is None:
            return PENDING
        key = str(vendor_state)
        if key in cls.STATE_MAP:
            return cls.STATE_MAP[key]
        if key.lower() in cls.STATE_MAP:
            return cls.STATE_MAP[key.lower()]
        if key.upper() in cls.STATE_MAP:
            return cls.STATE_MAP[key.upper()]
        log.warn(f"unknown {cls.KIND} commit status {vendor_state!r}, treating it as {PENDING}")
        return PENDING

    def _unsupported(self, operation):
        raise NotImplementedForBackend(operation, self.KIND)

    def _skip(self, operation):
        log.warn(f"{operation} is not supported by {self.label()}, skipping")

    # organisations and repositories

    @abstractmethod
    def list_organisations(self):
        """List the organisations the current user belongs to."""
        pass

    @abstractmethod
    def list_repositories(self, org):
        """List every repository of an organisation (or of the user when org is empty)."""
        pass

    @abstractmethod
    def get_repository(self, org, name):
        """Fetch one repository."""
        pass

    @abstractmethod
    def create_repository(self, org, name, private):
        """Create a repository in an organisation or the user's namespace."""
        pass

    @abstractmethod
    def rename_repository(self, org, name, new_name):
        """Rename a repository."""
        pass

    @abstractmethod
    def delete_repository(self, org, name):
        """Delete a repository."""
        pass

    @abstractmethod
    def fork_repository(self, original_org, name, destination_org):
        """Fork a repository and wait for the fork to become readable."""
        pass

    def validate_repository_name(self, org, name):
        """Succeed only when the vendor says the repository does not exist."""
        try:
            self.get_repository(org, name)
        except ApiError as e:
            if e.is_not_found():
                return
            raise
        raise RepositoryExistsError(org or self.current_username(), name)

    def branch_archive_url(self, org, name, branch):
        return ""

    def user_info(self, username):
        self._skip("user_info")
        return None

    def get_content(self, org, name, path, ref=""):
        self._unsupported("get_content")

    def add_collaborator(self, user, org, repo):
        self._skip("add_collaborator")

    # pull requests

    @abstractmethod
    def create_pull_request(self, args):
        """Open a pull request."""
        pass

    @abstractmethod
    def get_pull_request(self, owner, repo, number):
        """Fetch a pull request by number."""
        pass

    @abstractmethod
    def update_pull_request_status(self, pr):
        """Re-read a pull request and overwrite the given record in place."""
        pass

    @abstractmethod
    def get_pull_request_commits(self, owner, repo, number):
        """List the commits of a pull request."""
        pass

    @abstractmethod
    def merge_pull_request(self, pr, message):
        """Merge a pull request."""
        pass

    @abstractmethod
    def add_pr_comment(self, pr, comment):
        """Comment on a pull request."""
        pass

    @abstractmethod
    def pull_request_last_commit_status(self, pr):
        """Combined status of the last commit of a pull request."""
        pass

    def _wait_for(self, read, description):
        return self.poller.wait(read, description)

    # issues

    @abstractmethod
    def search_issues(self, org, name, query=""):
        """Search the issues of a repository."""
        pass

    def search_issues_closed_since(self, org, name, cutoff):
        issues = self.search_issues(org, name, "state=closed")
        return filter_issues_closed_since(issues, cutoff)

    @abstractmethod
    def get_issue(self, org, name, number):
        """Fetch an issue by number."""
        pass

    @abstractmethod
    def create_issue(self, owner, repo, issue):
        """Create an issue."""
        pass

    @abstractmethod
    def create_issue_comment(self, owner, repo, number, comment):
        """Comment on an issue."""
        pass

    @abstractmethod
    def issue_url(self, org, name, number, is_pull):
        """Web URL of an issue or pull request."""
        pass

    # commit statuses

    @abstractmethod
    def list_commit_status(self, org, repo, sha):
        """List the statuses reported for a commit."""
        pass

    @abstractmethod
    def update_commit_status(self, org, repo, sha, status):
        """Report a status for a commit."""
        pass

    # webhooks

    @abstractmethod
    def list_webhooks(self, owner, repo):
        """List the webhooks of a repository."""
        pass

    @abstractmethod
    def _create_webhook(self, args):
        """Create a webhook without checking for an existing one."""
        pass

    @abstractmethod
    def update_webhook(self, args):
        """Update an existing webhook."""
        pass

    def create_webhook(self, args):
        """Create a webhook unless one already points at the same URL."""
        for hook in self.list_webhooks(args.owner, args.repo):
            if hook.url == args.url:
                log.info(f"Webhook already exists for {args.owner}/{args.repo} at {args.url}")
                return hook
        log.info(f"Creating webhook for {args.owner}/{args.repo}...")
        return self._create_webhook(args)

    # releases

    @abstractmethod
    def list_releases(self, org, name):
        """List the releases of a repository."""
        pass

    def _create_release(self, owner, repo, release):
        self._unsupported("create_release")

    def _edit_release(self, owner, repo, existing, release):
        self._unsupported("edit_release")

    def update_release(self, owner, repo, tag, release):
        """Create the release for a tag, or fill in the empty fields of the existing one."""
        existing = None
        for r in self.list_releases(owner, repo):
            if r.tag_name == tag:
                existing = r
                break
        if existing is None:
            release.tag_name = tag
            return self._create_release(owner, repo, release)
        merged = merge_release(existing, release)
        return self._edit_release(owner, repo, existing, merged)


def merge_release(existing, incoming):
    """Keep existing values and take incoming ones only where the existing field is empty."""
    return existing.__class__(
        tag_name=existing.tag_name,
        name=existing.name or incoming.name,
        body=existing.body or incoming.body,
        url=existing.url or incoming.url,
        html_url=existing.html_url or incoming.html_url,
        download_count=existing.download_count,
        assets=existing.assets or incoming.assets,
        draft=existing.draft,
        prerelease=existing.prerelease,
        id=existing.id,
    )


def overwrite_record(target, source):
    """Copy every field of source onto target so callers holding target see the refresh."""
    for name, value in vars(source).items():
        setattr(target, name, value)
