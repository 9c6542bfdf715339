from urllib.parse import quote

from .. import kinds, log
from ..errors import ApiError
from ..utils import url_join
from .base import GitProvider, overwrite_record
from .client import RestClient
from .models import (
    ERROR, FAILURE, IN_PROGRESS, PENDING, STOPPED, SUCCESS,
    Commit, FileContent, Issue, Label, Organisation, PullRequest, Release, ReleaseAsset,
    RepoStatus, Repository, User, WebhookArguments, parse_time,
)

# canonical state -> gitlab commit status name
STATE_TO_GITLAB = {
    PENDING: "pending",
    IN_PROGRESS: "running",
    SUCCESS: "success",
    FAILURE: "failed",
    ERROR: "failed",
    STOPPED: "canceled",
}


def project_id(owner, name):
    """GitLab accepts the URL encoded "namespace/project" path wherever it wants a project id."""
    return quote(f"{owner}/{name}", safe="")


def to_repository(data):
    namespace = data.get("namespace") or {}
    return Repository(
        name=data.get("name", ""),
        organisation=namespace.get("full_path") or namespace.get("path") or "",
        clone_url=data.get("http_url_to_repo") or "",
        ssh_url=data.get("ssh_url_to_repo") or "",
        html_url=data.get("web_url") or "",
        fork=data.get("forked_from_project") is not None,
        allow_merge_commit=True,
        stars=data.get("star_count") or 0,
        url=data.get("web_url") or "",
    )


def to_user(data):
    if not data:
        return None
    return User(
        login=data.get("username", ""),
        name=data.get("name") or "",
        email=data.get("email") or data.get("public_email") or "",
        avatar_url=data.get("avatar_url") or "",
        url=data.get("web_url") or "",
    )


def to_merge_request(data, owner, repo):
    state = data.get("state")
    return PullRequest(
        url=data.get("web_url") or "",
        owner=owner,
        repo=repo,
        number=data.get("iid"),
        title=data.get("title") or "",
        body=data.get("description") or "",
        state=state,
        mergeable=data.get("merge_status") == "can_be_merged" if data.get("merge_status") else None,
        merged=state == "merged",
        head_ref=data.get("source_branch"),
        last_commit_sha=data.get("sha") or "",
        merge_commit_sha=data.get("merge_commit_sha"),
        closed_at=parse_time(data.get("closed_at")),
        merged_at=parse_time(data.get("merged_at")),
        author=to_user(data.get("author")),
    )


def to_issue(data, owner, repo):
    return Issue(
        url=data.get("web_url") or "",
        owner=owner,
        repo=repo,
        number=data.get("iid"),
        key=str(data.get("iid", "")),
        title=data.get("title") or "",
        body=data.get("description") or "",
        state=data.get("state"),
        labels=[Label(name=l) if isinstance(l, str) else Label(name=l.get("name", ""), color=l.get("color") or "")
                for l in data.get("labels") or []],
        created_at=parse_time(data.get("created_at")),
        updated_at=parse_time(data.get("updated_at")),
        closed_at=parse_time(data.get("closed_at")),
        user=to_user(data.get("author")),
        closed_by=to_user(data.get("closed_by")),
        assignees=[to_user(a) for a in data.get("assignees") or []],
    )


def to_release(data):
    links = (data.get("assets") or {}).get("links") or []
    return Release(
        id=data.get("tag_name"),
        tag_name=data.get("tag_name", ""),
        name=data.get("name") or "",
        body=data.get("description") or "",
        url=(data.get("_links") or {}).get("self") or "",
        html_url=(data.get("_links") or {}).get("self") or "",
        assets=[ReleaseAsset(name=l.get("name", ""), browser_download_url=l.get("url") or "") for l in links],
    )


class GitlabProvider(GitProvider):
    KIND = kinds.GITLAB
    STATE_MAP = {
        "created": PENDING,
        "waiting_for_resource": PENDING,
        "preparing": PENDING,
        "pending": PENDING,
        "scheduled": PENDING,
        "manual": PENDING,
        "running": IN_PROGRESS,
        "success": SUCCESS,
        "failed": FAILURE,
        "canceled": STOPPED,
        "skipped": STOPPED,
    }

    def _make_client(self):
        auth = self._user_auth
        if auth.bearer_token:
            headers = {"Authorization": f"Bearer {auth.bearer_token}"}
        else:
            headers = {"PRIVATE-TOKEN": auth.api_token}
        return RestClient(url_join(self.server.url, "api/v4"), headers=headers, timeout=self.http_timeout)

    def _owner(self, org):
        return org or self.current_username()

    def _project(self, org, name):
        return f"/projects/{project_id(self._owner(org), name)}"

    @classmethod
    def token_url_for(cls, server):
        return url_join(server.url, "/-/profile/personal_access_tokens")

    # organisations and repositories

    def list_organisations(self):
        groups = self.client.get_all("/groups")
        return [Organisation(login=g.get("full_path") or g.get("path", "")) for g in groups]

    def list_repositories(self, org):
        owner = self._owner(org)
        if org and org != self.current_username():
            try:
                projects = self.client.get_all(f"/groups/{quote(org, safe='')}/projects")
            except ApiError as e:
                if not e.is_not_found():
                    raise
                # not a group, try it as a user namespace
                projects = self.client.get_all(f"/users/{owner}/projects", params={"owned": "true"})
        else:
            projects = self.client.get_all(f"/users/{owner}/projects", params={"owned": "true"})
        return [to_repository(p) for p in projects]

    def get_repository(self, org, name):
        return to_repository(self.client.get(self._project(org, name)))

    def _namespace_id(self, org):
        data = self.client.get(f"/namespaces/{quote(org, safe='')}")
        return data["id"]

    def create_repository(self, org, name, private):
        payload = {"name": name, "path": name, "visibility": "private" if private else "public"}
        if org and org != self.current_username():
            payload["namespace_id"] = self._namespace_id(org)
        log.info(f"Creating project '{name}' in '{self._owner(org)}'...")
        return to_repository(self.client.post("/projects", json=payload))

    def rename_repository(self, org, name, new_name):
        data = self.client.put(self._project(org, name), json={"name": new_name, "path": new_name})
        return to_repository(data)

    def delete_repository(self, org, name):
        self.client.delete(self._project(org, name))

    def fork_repository(self, original_org, name, destination_org):
        payload = {}
        if destination_org:
            payload["namespace_path"] = destination_org
        data = self.client.post(f"{self._project(original_org, name)}/fork", json=payload)
        created = to_repository(data)
        fork_id = data.get("id")

        def imported():
            project = self.client.get(f"/projects/{fork_id}")
            if project.get("import_status") in (None, "none", "finished"):
                return to_repository(project)
            return None

        ok, repo = self._wait_for(imported, f"fork of {original_org}/{name}")
        return repo if ok else created

    def branch_archive_url(self, org, name, branch):
        return url_join(self.server.url, org, name, "-/archive", branch, f"{name}-{branch}.zip")

    def user_info(self, username):
        users = self.client.get("/users", params={"username": username}) or []
        if not users:
            return None
        user = to_user(users[0])
        user.login = username
        return user

    def get_content(self, org, name, path, ref=""):
        params = {"ref": ref or "HEAD"}
        data = self.client.get(f"{self._project(org, name)}/repository/files/{quote(path, safe='')}", params=params)
        return FileContent(
            path=data.get("file_path", path),
            name=data.get("file_name") or "",
            encoding=data.get("encoding") or "",
            size=data.get("size") or 0,
            content=data.get("content") or "",
            sha=data.get("blob_id") or "",
        )

    def add_collaborator(self, user, org, repo):
        log.info(f"Adding collaborators is not implemented for GitLab. Please add user {user} to {org}/{repo} by hand.")

    # merge requests

    def create_pull_request(self, args):
        repo = args.repository
        owner = self._owner(repo.organisation)
        data = self.client.post(f"{self._project(owner, repo.name)}/merge_requests", json={
            "title": args.title,
            "description": args.body,
            "source_branch": args.head,
            "target_branch": args.base,
        })
        return to_merge_request(data, owner, repo.name)

    def get_pull_request(self, owner, repo, number):
        data = self.client.get(f"{self._project(owner, repo)}/merge_requests/{number}")
        return to_merge_request(data, owner, repo)

    def update_pull_request_status(self, pr):
        if pr.number is None:
            raise ValueError(f"merge request {pr.url} has no number")
        overwrite_record(pr, self.get_pull_request(pr.owner, pr.repo, pr.number))
        return pr

    def get_pull_request_commits(self, owner, repo, number):
        commits = self.client.get_all(f"{self._project(owner, repo)}/merge_requests/{number}/commits")
        return [
            Commit(
                sha=c.get("id", ""),
                message=c.get("message") or "",
                author=User(login="", name=c.get("author_name") or "", email=c.get("author_email") or ""),
                committer=User(login="", name=c.get("committer_name") or "", email=c.get("committer_email") or ""),
                url=c.get("web_url") or "",
            )
            for c in commits
        ]

    def merge_pull_request(self, pr, message):
        self.client.put(f"{self._project(pr.owner, pr.repo)}/merge_requests/{pr.number}/merge",
                        json={"merge_commit_message": message})

    def add_pr_comment(self, pr, comment):
        self.client.post(f"{self._project(pr.owner, pr.repo)}/merge_requests/{pr.number}/notes", json={"body": comment})

    def pull_request_last_commit_status(self, pr):
        if not pr.last_commit_sha:
            raise ValueError(f"merge request {pr.number_string()} has no last commit sha")
        for status in self.list_commit_status(pr.owner, pr.repo, pr.last_commit_sha):
            if status.state:
                return status.state
        raise ApiError(404, pr.url, f"no status found for {pr.owner}/{pr.repo} at {pr.last_commit_sha}")

    # issues

    def search_issues(self, org, name, query=""):
        owner = self._owner(org)
        params = {}
        if query.startswith("state="):
            params["state"] = query.split("=", 1)[1]
        elif query:
            params["search"] = query
        issues = self.client.get_all(f"{self._project(owner, name)}/issues", params=params)
        return [to_issue(i, owner, name) for i in issues]

    def get_issue(self, org, name, number):
        owner = self._owner(org)
        try:
            return to_issue(self.client.get(f"{self._project(owner, name)}/issues/{number}"), owner, name)
        except ApiError as e:
            if e.is_not_found():
                return None
            raise

    def create_issue(self, owner, repo, issue):
        payload = {"title": issue.title, "description": issue.body}
        if issue.labels:
            payload["labels"] = ",".join(l.name for l in issue.labels)
        return to_issue(self.client.post(f"{self._project(owner, repo)}/issues", json=payload), owner, repo)

    def create_issue_comment(self, owner, repo, number, comment):
        self.client.post(f"{self._project(owner, repo)}/issues/{number}/notes", json={"body": comment})

    def issue_url(self, org, name, number, is_pull):
        kind = "merge_requests" if is_pull else "issues"
        return url_join(self.server.url, org, name, "-", kind, str(number))

    # commit statuses

    def _to_status(self, data):
        return RepoStatus(
            id=str(data.get("id", "")),
            context=data.get("name") or "",
            url=data.get("target_url") or "",
            state=self.to_status_state(data.get("status")),
            target_url=data.get("target_url") or "",
            description=data.get("description") or "",
        )

    def list_commit_status(self, org, repo, sha):
        statuses = self.client.get_all(f"{self._project(org, repo)}/repository/commits/{sha}/statuses")
        return [self._to_status(s) for s in statuses]

    def update_commit_status(self, org, repo, sha, status):
        data = self.client.post(f"{self._project(org, repo)}/statuses/{sha}", json={
            "state": STATE_TO_GITLAB.get(status.state, "pending"),
            "name": status.context,
            "target_url": status.target_url,
            "description": status.description,
        })
        return self._to_status(data)

    # webhooks

    def list_webhooks(self, owner, repo):
        hooks = self.client.get_all(f"{self._project(owner, repo)}/hooks")
        return [WebhookArguments(id=h.get("id"), owner=owner, repo=repo, url=h.get("url", "")) for h in hooks]

    def _hook_payload(self, args):
        return {
            "url": args.url,
            "token": args.secret,
            "push_events": True,
            "merge_requests_events": True,
            "tag_push_events": True,
            "note_events": True,
        }

    def _create_webhook(self, args):
        data = self.client.post(f"{self._project(args.owner, args.repo)}/hooks", json=self._hook_payload(args))
        return WebhookArguments(id=data.get("id"), owner=args.owner, repo=args.repo, url=data.get("url", args.url),
                                secret=args.secret)

    def update_webhook(self, args):
        if args.id is None:
            raise ValueError("webhook id is required to update a webhook")
        data = self.client.put(f"{self._project(args.owner, args.repo)}/hooks/{args.id}",
                               json=self._hook_payload(args))
        return WebhookArguments(id=data.get("id"), owner=args.owner, repo=args.repo, url=data.get("url", args.url),
                                secret=args.secret)

    # releases

    def list_releases(self, org, name):
        return [to_release(r) for r in self.client.get_all(f"{self._project(org, name)}/releases")]

    def _create_release(self, owner, repo, release):
        data = self.client.post(f"{self._project(owner, repo)}/releases", json={
            "tag_name": release.tag_name,
            "name": release.name,
            "description": release.body,
        })
        return to_release(data)

    def _edit_release(self, owner, repo, existing, release):
        data = self.client.put(f"{self._project(owner, repo)}/releases/{quote(existing.tag_name, safe='')}", json={
            "name": release.name,
            "description": release.body,
        })
        return to_release(data)
