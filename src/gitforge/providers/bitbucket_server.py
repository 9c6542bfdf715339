from .. import kinds, log
from ..errors import ApiError
from ..utils import url_join
from .base import GitProvider, overwrite_record
from .client import RestClient
from .models import (
    FAILURE, IN_PROGRESS, STOPPED, SUCCESS,
    Commit, Organisation, PullRequest, RepoStatus, Repository, User, WebhookArguments,
    parse_time,
)

STATE_TO_BITBUCKET = {
    SUCCESS: "SUCCESSFUL",
    FAILURE: "FAILED",
    "error": "FAILED",
    IN_PROGRESS: "INPROGRESS",
    "pending": "INPROGRESS",
    STOPPED: "FAILED",
}

WEBHOOK_EVENTS = [
    "repo:refs_changed", "repo:modified", "repo:forked",
    "repo:comment:added", "repo:comment:edited", "repo:comment:deleted",
    "pr:opened", "pr:reviewer:approved", "pr:reviewer:unapproved", "pr:reviewer:needs_work",
    "pr:merged", "pr:declined", "pr:deleted",
    "pr:comment:added", "pr:comment:edited", "pr:comment:deleted",
]


def parse_server_url(url):
    """
    Return (project_key, repo_slug) for a Bitbucket Server clone or browse URL.

    Handles both https://host/scm/KEY/repo.git and
    https://host/projects/KEY/repos/repo/pull-requests/1.
    """
    if url.endswith(".git"):
        parts = url[:-len(".git")].rstrip("/").split("/")
        return parts[-2], parts[-1]
    after = url[url.index("projects/") + len("projects/"):]
    project_key = after.split("/")[0]
    after = after[after.index("repos/") + len("repos/"):]
    return project_key, after.split("/")[0]


def _self_link(data):
    links = (data.get("links") or {}).get("self") or []
    return links[0].get("href", "") if links else ""


def to_repository(data):
    ssh_url = ""
    clone_url = ""
    for link in (data.get("links") or {}).get("clone") or []:
        if link.get("name") == "ssh":
            ssh_url = link.get("href", "")
        elif link.get("name") == "http":
            clone_url = link.get("href", "")
            if not clone_url.endswith(".git"):
                clone_url += ".git"
    if not clone_url:
        clone_url = ssh_url
    project = data.get("project") or {}
    return Repository(
        name=data.get("slug") or data.get("name", ""),
        organisation=project.get("key", ""),
        project=project.get("key", ""),
        clone_url=clone_url,
        ssh_url=ssh_url,
        html_url=_self_link(data),
        fork="origin" in data,
        allow_merge_commit=True,
        url=_self_link(data),
    )


def to_user(data):
    if not data:
        return None
    return User(
        login=data.get("name") or data.get("slug") or "",
        name=data.get("displayName") or "",
        email=data.get("emailAddress") or "",
        url=_self_link(data),
    )


def to_pull_request(data):
    to_ref = data.get("toRef") or {}
    from_ref = data.get("fromRef") or {}
    repo = to_ref.get("repository") or {}
    state = data.get("state")
    closed = data.get("closedDate")
    return PullRequest(
        url=_self_link(data),
        owner=(repo.get("project") or {}).get("key", ""),
        repo=repo.get("slug") or repo.get("name", ""),
        number=data.get("id"),
        title=data.get("title") or "",
        body=data.get("description") or "",
        state=state,
        merged=state == "MERGED",
        head_ref=from_ref.get("displayId") or from_ref.get("id"),
        last_commit_sha=from_ref.get("latestCommit") or "",
        closed_at=parse_time(closed) if closed else None,
        merged_at=parse_time(closed) if state == "MERGED" and closed else None,
        diff_url=_self_link(data) + "/diff" if _self_link(data) else None,
        author=to_user((data.get("author") or {}).get("user")),
        version=data.get("version"),
    )


def to_commit(data):
    return Commit(
        sha=data.get("id", ""),
        message=data.get("message") or "",
        author=to_user(data.get("author")),
        committer=to_user(data.get("committer")),
    )


class BitbucketServerProvider(GitProvider):
    KIND = kinds.BITBUCKET_SERVER
    STATE_MAP = {
        "SUCCESSFUL": SUCCESS,
        "FAILED": FAILURE,
        "INPROGRESS": IN_PROGRESS,
        "STOPPED": STOPPED,
    }

    def _make_client(self):
        auth = self._user_auth
        base = url_join(self.server.url, "rest/api/1.0")
        if auth.bearer_token:
            return RestClient(base, headers={"Authorization": f"Bearer {auth.bearer_token}"}, timeout=self.http_timeout)
        return RestClient(base, auth=(auth.username, auth.api_token), timeout=self.http_timeout)

    def _paged(self, path, params=None, limit=100):
        """Drain a start/limit paged collection."""
        results = []
        start = 0
        while True:
            query = dict(params or {})
            query.update({"start": start, "limit": limit})
            page = self.client.get(path, params=query) or {}
            results.extend(page.get("values") or [])
            if page.get("isLastPage", True):
                return results
            next_start = page.get("nextPageStart")
            if next_start is None or next_start <= start:
                return results
            start = next_start

    def _repo_path(self, org, name):
        if org:
            return f"/projects/{org}/repos/{name}"
        return f"/users/{self.current_username()}/repos/{name}"

    def _build_status_url(self, sha):
        return url_join(self.server.url, "rest/build-status/1.0/commits", sha)

    @classmethod
    def token_url_for(cls, server):
        return url_join(server.url, "/plugins/servlet/access-tokens/manage")

    # projects and repositories

    def list_organisations(self):
        return [Organisation(login=p.get("key", "")) for p in self._paged("/projects")]

    def list_repositories(self, org):
        if org:
            repos = self._paged(f"/projects/{org}/repos")
        else:
            repos = self._paged(f"/users/{self.current_username()}/repos")
        return [to_repository(r) for r in repos]

    def get_repository(self, org, name):
        return to_repository(self.client.get(self._repo_path(org, name)))

    def create_repository(self, org, name, private):
        log.info(f"Creating repo '{name}' in project '{org}'...")
        path = f"/projects/{org}/repos" if org else f"/users/{self.current_username()}/repos"
        data = self.client.post(path, json={"name": name, "scmId": "git", "forkable": True, "public": not private})
        return to_repository(data)

    def rename_repository(self, org, name, new_name):
        return to_repository(self.client.put(self._repo_path(org, name), json={"name": new_name}))

    def delete_repository(self, org, name):
        self.client.delete(self._repo_path(org, name))

    def fork_repository(self, original_org, name, destination_org):
        payload = {}
        if destination_org:
            payload["project"] = {"key": destination_org}
        data = self.client.post(f"/projects/{original_org}/repos/{name}", json=payload)
        created = to_repository(data)
        ok, repo = self._wait_for(lambda: self.get_repository(destination_org, name),
                                  f"fork {destination_org or self.current_username()}/{name}")
        return repo if ok else created

    def branch_archive_url(self, org, name, branch):
        return url_join(self.server.url, "rest/api/1.0/projects", org, "repos", name, f"archive?format=zip&at={branch}")

    def user_info(self, username):
        try:
            return to_user(self.client.get(f"/users/{username}"))
        except ApiError as e:
            log.error(f"Unable to fetch user info for {username} due to {e}")
            return None

    def add_collaborator(self, user, org, repo):
        log.info(f"Adding collaborators is not implemented for Bitbucket Server. Please add user {user} to {org}/{repo} by hand.")

    # pull requests

    def create_pull_request(self, args):
        repo = args.repository
        project = repo.project or repo.organisation
        ref_repo = {"slug": repo.name, "project": {"key": project}}
        data = self.client.post(f"/projects/{project}/repos/{repo.name}/pull-requests", json={
            "title": args.title,
            "description": args.body,
            "state": "OPEN",
            "open": True,
            "closed": False,
            "fromRef": {"id": args.head, "repository": ref_repo},
            "toRef": {"id": args.base, "repository": ref_repo},
        })
        created = to_pull_request(data)
        ok, fresh = self._wait_for(lambda: self.get_pull_request(project, repo.name, created.number),
                                   f"pull request {created.number_string()} on {project}/{repo.name}")
        return fresh if ok else created

    def get_pull_request(self, owner, repo, number):
        return to_pull_request(self.client.get(f"/projects/{owner}/repos/{repo}/pull-requests/{number}"))

    def _pr_location(self, pr):
        if pr.url and "projects/" in pr.url:
            return parse_server_url(pr.url)
        return pr.owner, pr.repo

    def update_pull_request_status(self, pr):
        if pr.number is None:
            raise ValueError(f"pull request {pr.url} has no number")
        project, repo = self._pr_location(pr)
        fresh = self.get_pull_request(project, repo, pr.number)
        base = f"/projects/{project}/repos/{repo}/pull-requests/{pr.number}"
        if fresh.merged:
            activity = self.client.get(f"{base}/activities") or {}
            for item in activity.get("values") or []:
                commit = item.get("commit")
                if item.get("action") == "MERGED" and commit:
                    fresh.merge_commit_sha = commit.get("id")
                    break
        commits = self.client.get(f"{base}/commits", params={"limit": 1}) or {}
        values = commits.get("values") or []
        if values:
            fresh.last_commit_sha = values[0].get("id", fresh.last_commit_sha)
        overwrite_record(pr, fresh)
        return pr

    def get_pull_request_commits(self, owner, repo, number):
        commits = self._paged(f"/projects/{owner}/repos/{repo}/pull-requests/{number}/commits")
        return [to_commit(c) for c in commits]

    def merge_pull_request(self, pr, message):
        project, repo = self._pr_location(pr)
        current = self.get_pull_request(project, repo, pr.number)
        self.client.post(f"/projects/{project}/repos/{repo}/pull-requests/{pr.number}/merge",
                         params={"version": current.version}, json={"message": message})

    def add_pr_comment(self, pr, comment):
        if pr.number is None:
            raise ValueError(f"pull request {pr.url} has no number")
        project, repo = self._pr_location(pr)
        self.client.post(f"/projects/{project}/repos/{repo}/pull-requests/{pr.number}/comments",
                         json={"text": comment})

    def pull_request_last_commit_status(self, pr):
        for status in self._paged(self._build_status_url(pr.last_commit_sha)):
            if status.get("state"):
                return self.to_status_state(status.get("state"))
        raise ApiError(404, pr.url, f"no build status found for {pr.last_commit_sha}")

    # issues are not part of Bitbucket Server

    def has_issues(self):
        return False

    def search_issues(self, org, name, query=""):
        log.warn("Searching issues on Bitbucket Server is not supported")
        return []

    def get_issue(self, org, name, number):
        log.warn("Finding an issue on Bitbucket Server is not supported")
        return None

    def create_issue(self, owner, repo, issue):
        log.warn("Creating an issue on Bitbucket Server is not supported")
        return None

    def create_issue_comment(self, owner, repo, number, comment):
        log.warn("Commenting on an issue on Bitbucket Server is not supported")

    def issue_url(self, org, name, number, is_pull):
        if is_pull:
            return url_join(self.server.url, "projects", org, "repos", name, "pull-requests", str(number))
        return url_join(self.server.url, org, name, "issues", str(number))

    # build statuses

    def _to_status(self, data):
        return RepoStatus(
            id=data.get("key") or "",
            context=data.get("name") or data.get("key") or "",
            url=data.get("url") or "",
            state=self.to_status_state(data.get("state")),
            target_url=data.get("url") or "",
            description=data.get("description") or "",
        )

    def list_commit_status(self, org, repo, sha):
        return [self._to_status(s) for s in self._paged(self._build_status_url(sha))]

    def update_commit_status(self, org, repo, sha, status):
        payload = {
            "state": STATE_TO_BITBUCKET.get(status.state, "INPROGRESS"),
            "key": status.id or status.context,
            "name": status.context,
            "url": status.target_url,
            "description": status.description,
        }
        self.client.post(self._build_status_url(sha), json=payload)
        return self._to_status(payload)

    # webhooks

    def list_webhooks(self, owner, repo):
        hooks = self._paged(f"/projects/{owner}/repos/{repo}/webhooks")
        return [WebhookArguments(id=h.get("id"), owner=owner, repo=repo, url=h.get("url", ""),
                                 events=list(h.get("events") or [])) for h in hooks]

    def _hook_payload(self, args):
        payload = {
            "url": args.url,
            "name": "gitforge webhook",
            "active": True,
            "events": args.events or WEBHOOK_EVENTS,
        }
        if args.secret:
            payload["configuration"] = {"secret": args.secret}
        return payload

    def _create_webhook(self, args):
        data = self.client.post(f"/projects/{args.owner}/repos/{args.repo}/webhooks", json=self._hook_payload(args))
        return WebhookArguments(id=data.get("id"), owner=args.owner, repo=args.repo, url=data.get("url", args.url),
                                secret=args.secret, events=list(data.get("events") or []))

    def update_webhook(self, args):
        if args.id is None:
            raise ValueError("webhook id is required to update a webhook")
        data = self.client.put(f"/projects/{args.owner}/repos/{args.repo}/webhooks/{args.id}",
                               json=self._hook_payload(args))
        return WebhookArguments(id=data.get("id"), owner=args.owner, repo=args.repo, url=data.get("url", args.url),
                                secret=args.secret, events=list(data.get("events") or []))

    # releases

    def list_releases(self, org, name):
        log.warn("Bitbucket Server doesn't support releases")
        return []

    def update_release(self, owner, repo, tag, release):
        log.warn("Bitbucket Server doesn't support releases")
        return None
