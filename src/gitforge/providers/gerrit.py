"""
Gerrit has no pull requests, issues, webhooks or releases.

Only project listing, lookup and creation talk to the server. Everything
else logs that it was skipped, except the repository mutations Gerrit cannot
do, which raise NotImplementedForBackend.
"""
from urllib.parse import quote, unquote

from .. import kinds, log
from ..utils import url_join
from .base import GitProvider
from .client import GERRIT_XSSI_PREFIX, RestClient
from .models import Repository


def encoded_project_name(org, name):
    """Project names may already be escaped, so unescape before escaping once."""
    full_name = f"{org}/{name}" if org else name
    return quote(unquote(full_name), safe="")


class GerritProvider(GitProvider):
    KIND = kinds.GERRIT
    # gerrit reports no commit statuses; this table only exists for symmetry
    STATE_MAP = {}

    def _make_client(self):
        auth = self._user_auth
        return RestClient(url_join(self.server.url, "a"), auth=(auth.username, auth.api_token),
                          strip_prefix=GERRIT_XSSI_PREFIX, timeout=self.http_timeout)

    def _to_repository(self, name, data=None):
        data = data or {}
        name = data.get("name") or name
        return Repository(
            name=name,
            organisation=name.rsplit("/", 1)[0] if "/" in name else "",
            clone_url=f"{self.server.url.rstrip('/')}/{name}",
            ssh_url=f"{self.server.url.rstrip('/')}:{name}",
            url=url_join(self.server.url, "admin/repos", name),
        )

    def has_issues(self):
        return False

    # projects

    def list_organisations(self):
        return []

    def list_repositories(self, org):
        params = {"d": ""}
        if org:
            params["p"] = org
        projects = self.client.get("/projects/", params=params) or {}
        return [self._to_repository(name, data) for name, data in sorted(projects.items())]

    def get_repository(self, org, name):
        data = self.client.get(f"/projects/{encoded_project_name(org, name)}")
        return self._to_repository(unquote(encoded_project_name(org, name)), data)

    def create_repository(self, org, name, private):
        log.info(f"Creating project '{name}' on {self.label()}...")
        data = self.client.put(f"/projects/{encoded_project_name(org, name)}", json={
            "submit_type": "INHERIT",
            "description": "Created automatically by gitforge.",
            "permissions_only": private,
        })
        return self._to_repository(unquote(encoded_project_name(org, name)), data)

    def rename_repository(self, org, name, new_name):
        self._unsupported("rename_repository")

    def delete_repository(self, org, name):
        self._unsupported("delete_repository")

    def fork_repository(self, original_org, name, destination_org):
        self._unsupported("fork_repository")

    def branch_archive_url(self, org, name, branch):
        return ""

    # changes are not modelled as pull requests

    def create_pull_request(self, args):
        self._skip("create_pull_request")
        return None

    def get_pull_request(self, owner, repo, number):
        self._skip("get_pull_request")
        return None

    def update_pull_request_status(self, pr):
        self._skip("update_pull_request_status")
        return pr

    def get_pull_request_commits(self, owner, repo, number):
        self._skip("get_pull_request_commits")
        return []

    def merge_pull_request(self, pr, message):
        self._skip("merge_pull_request")

    def add_pr_comment(self, pr, comment):
        self._skip("add_pr_comment")

    def pull_request_last_commit_status(self, pr):
        self._skip("pull_request_last_commit_status")
        return ""

    # issues

    def search_issues(self, org, name, query=""):
        self._skip("search_issues")
        return []

    def get_issue(self, org, name, number):
        self._skip("get_issue")
        return None

    def create_issue(self, owner, repo, issue):
        self._skip("create_issue")
        return None

    def create_issue_comment(self, owner, repo, number, comment):
        self._skip("create_issue_comment")

    def issue_url(self, org, name, number, is_pull):
        return ""

    # statuses

    def list_commit_status(self, org, repo, sha):
        self._skip("list_commit_status")
        return []

    def update_commit_status(self, org, repo, sha, status):
        self._unsupported("update_commit_status")

    # webhooks

    def list_webhooks(self, owner, repo):
        self._skip("list_webhooks")
        return []

    def _create_webhook(self, args):
        self._skip("create_webhook")
        return None

    def create_webhook(self, args):
        return self._create_webhook(args)

    def update_webhook(self, args):
        self._skip("update_webhook")
        return None

    # releases

    def list_releases(self, org, name):
        self._skip("list_releases")
        return []

    def update_release(self, owner, repo, tag, release):
        self._skip("update_release")
        return None
