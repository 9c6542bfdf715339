from .. import kinds, log
from ..errors import ApiError
from ..utils import url_join
from . import github
from .base import GitProvider, overwrite_record
from .client import RestClient
from .models import (
    ERROR, FAILURE, PENDING, SUCCESS,
    FileContent, Organisation, RepoStatus, User,
)

# gitea mirrors most of the GitHub v3 payloads
to_repository = github.to_repository
to_pull_request = github.to_pull_request
to_issue = github.to_issue
to_release = github.to_release
to_webhook = github.to_webhook


def to_user(data):
    if not data:
        return None
    return User(
        login=data.get("login") or data.get("username") or "",
        name=data.get("full_name") or "",
        email=data.get("email") or "",
        avatar_url=data.get("avatar_url") or "",
    )


class GiteaProvider(GitProvider):
    KIND = kinds.GITEA
    STATE_MAP = {
        "pending": PENDING,
        "success": SUCCESS,
        "error": ERROR,
        "failure": FAILURE,
        "warning": FAILURE,
    }

    def _make_client(self):
        auth = self._user_auth
        if auth.bearer_token:
            authorization = f"Bearer {auth.bearer_token}"
        else:
            authorization = f"token {auth.api_token}"
        return RestClient(url_join(self.server.url, "api/v1"), headers={"Authorization": authorization},
                          timeout=self.http_timeout)

    def _owner(self, org):
        return org or self.current_username()

    @classmethod
    def token_url_for(cls, server):
        return url_join(server.url, "/user/settings/applications")

    # organisations and repositories

    def list_organisations(self):
        return [Organisation(login=o.get("username") or o.get("login", "")) for o in self.client.get_all("/user/orgs")]

    def list_repositories(self, org):
        if not org or org == self.current_username():
            repos = self.client.get_all("/user/repos")
        else:
            repos = self.client.get_all(f"/orgs/{org}/repos")
        return [to_repository(r) for r in repos]

    def get_repository(self, org, name):
        return to_repository(self.client.get(f"/repos/{self._owner(org)}/{name}"))

    def create_repository(self, org, name, private):
        payload = {"name": name, "private": private}
        if org and org != self.current_username():
            log.info(f"Creating repo '{name}' in organization '{org}'...")
            data = self.client.post(f"/org/{org}/repos", json=payload)
        else:
            log.info(f"Creating repo '{name}' for user '{self.current_username()}'...")
            data = self.client.post("/user/repos", json=payload)
        return to_repository(data)

    def rename_repository(self, org, name, new_name):
        return to_repository(self.client.patch(f"/repos/{self._owner(org)}/{name}", json={"name": new_name}))

    def delete_repository(self, org, name):
        self.client.delete(f"/repos/{self._owner(org)}/{name}")

    def fork_repository(self, original_org, name, destination_org):
        payload = {}
        if destination_org:
            payload["organization"] = destination_org
        owner = self._owner(destination_org)
        try:
            return to_repository(self.client.post(f"/repos/{original_org}/{name}/forks", json=payload))
        except ApiError as e:
            if "try again later" not in str(e.body):
                raise
        log.warn(f"Waiting for the fork of {owner}/{name} to appear...")
        ok, result = self._wait_for(lambda: self.get_repository(owner, name), f"fork {owner}/{name}")
        if not ok:
            raise result
        return result

    def branch_archive_url(self, org, name, branch):
        return url_join(self.server.url, org, name, "archive", f"{branch}.zip")

    def user_info(self, username):
        try:
            return to_user(self.client.get(f"/users/{username}"))
        except ApiError as e:
            if e.is_not_found():
                return None
            raise

    def get_content(self, org, name, path, ref=""):
        params = {"ref": ref} if ref else None
        data = self.client.get(f"/repos/{self._owner(org)}/{name}/contents/{path}", params=params)
        return FileContent(
            path=data.get("path", path),
            type=data.get("type") or "file",
            encoding=data.get("encoding") or "",
            size=data.get("size") or 0,
            name=data.get("name") or "",
            content=data.get("content") or "",
            sha=data.get("sha") or "",
            url=data.get("url") or "",
            html_url=data.get("html_url") or "",
            download_url=data.get("download_url") or "",
        )

    def add_collaborator(self, user, org, repo):
        log.info(f"Adding {user} as a collaborator on {org}/{repo}")
        self.client.put(f"/repos/{self._owner(org)}/{repo}/collaborators/{user}", json={"permission": "write"})

    # pull requests

    def create_pull_request(self, args):
        repo = args.repository
        owner = self._owner(repo.organisation)
        data = self.client.post(f"/repos/{owner}/{repo.name}/pulls", json={
            "title": args.title,
            "body": args.body,
            "head": args.head,
            "base": args.base,
        })
        return to_pull_request(data, owner, repo.name)

    def get_pull_request(self, owner, repo, number):
        return to_pull_request(self.client.get(f"/repos/{owner}/{repo}/pulls/{number}"), owner, repo)

    def update_pull_request_status(self, pr):
        if pr.number is None:
            raise ValueError(f"pull request {pr.url} has no number")
        overwrite_record(pr, self.get_pull_request(pr.owner, pr.repo, pr.number))
        return pr

    def get_pull_request_commits(self, owner, repo, number):
        commits = self.client.get_all(f"/repos/{owner}/{repo}/pulls/{number}/commits")
        return [github.to_commit(c) for c in commits]

    def merge_pull_request(self, pr, message):
        self.client.post(f"/repos/{pr.owner}/{pr.repo}/pulls/{pr.number}/merge", json={
            "Do": "merge",
            "MergeMessageField": message,
        })

    def add_pr_comment(self, pr, comment):
        if pr.number is None:
            raise ValueError(f"pull request {pr.url} has no number")
        self.create_issue_comment(pr.owner, pr.repo, pr.number, comment)

    def pull_request_last_commit_status(self, pr):
        if not pr.last_commit_sha:
            raise ValueError(f"pull request {pr.number_string()} has no last commit sha")
        for status in self.client.get_all(f"/repos/{pr.owner}/{pr.repo}/statuses/{pr.last_commit_sha}"):
            if status.get("status") or status.get("state"):
                return self.to_status_state(status.get("status") or status.get("state"))
        raise ApiError(404, pr.url, f"no status found for {pr.owner}/{pr.repo} at {pr.last_commit_sha}")

    # issues

    def search_issues(self, org, name, query=""):
        owner = self._owner(org)
        params = {"type": "issues"}
        if query.startswith("state="):
            params["state"] = query.split("=", 1)[1]
        elif query:
            params["q"] = query
        issues = self.client.get_all(f"/repos/{owner}/{name}/issues", params=params)
        return [to_issue(i, owner, name) for i in issues]

    def get_issue(self, org, name, number):
        owner = self._owner(org)
        try:
            return to_issue(self.client.get(f"/repos/{owner}/{name}/issues/{number}"), owner, name)
        except ApiError as e:
            if e.is_not_found():
                return None
            raise

    def create_issue(self, owner, repo, issue):
        payload = {"title": issue.title, "body": issue.body}
        if issue.assignees:
            payload["assignees"] = [a.login for a in issue.assignees]
        return to_issue(self.client.post(f"/repos/{owner}/{repo}/issues", json=payload), owner, repo)

    def create_issue_comment(self, owner, repo, number, comment):
        self.client.post(f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": comment})

    def issue_url(self, org, name, number, is_pull):
        kind = "pulls" if is_pull else "issues"
        return url_join(self.server.url, org, name, kind, str(number))

    # commit statuses

    def _to_status(self, data):
        return RepoStatus(
            id=str(data.get("id", "")),
            context=data.get("context") or "",
            url=data.get("url") or "",
            state=self.to_status_state(data.get("status") or data.get("state")),
            target_url=data.get("target_url") or "",
            description=data.get("description") or "",
        )

    def list_commit_status(self, org, repo, sha):
        return [self._to_status(s) for s in self.client.get_all(f"/repos/{org}/{repo}/statuses/{sha}")]

    def update_commit_status(self, org, repo, sha, status):
        state = status.state if status.state in self.STATE_MAP else PENDING
        data = self.client.post(f"/repos/{org}/{repo}/statuses/{sha}", json={
            "state": state,
            "context": status.context,
            "target_url": status.target_url,
            "description": status.description,
        })
        return self._to_status(data)

    # webhooks

    def list_webhooks(self, owner, repo):
        return [to_webhook(h, owner, repo) for h in self.client.get_all(f"/repos/{owner}/{repo}/hooks")]

    def _hook_payload(self, args):
        return {
            "type": "gitea",
            "active": True,
            "events": args.events or ["push", "pull_request"],
            "config": {"url": args.url, "content_type": "json", "secret": args.secret},
        }

    def _create_webhook(self, args):
        data = self.client.post(f"/repos/{args.owner}/{args.repo}/hooks", json=self._hook_payload(args))
        return to_webhook(data, args.owner, args.repo)

    def update_webhook(self, args):
        if args.id is None:
            raise ValueError("webhook id is required to update a webhook")
        payload = self._hook_payload(args)
        payload.pop("type")
        data = self.client.patch(f"/repos/{args.owner}/{args.repo}/hooks/{args.id}", json=payload)
        return to_webhook(data, args.owner, args.repo)

    # releases

    def list_releases(self, org, name):
        return [to_release(r) for r in self.client.get_all(f"/repos/{self._owner(org)}/{name}/releases")]

    def _create_release(self, owner, repo, release):
        data = self.client.post(f"/repos/{owner}/{repo}/releases", json={
            "tag_name": release.tag_name,
            "name": release.name,
            "body": release.body,
            "draft": release.draft,
            "prerelease": release.prerelease,
        })
        return to_release(data)

    def _edit_release(self, owner, repo, existing, release):
        data = self.client.patch(f"/repos/{owner}/{repo}/releases/{existing.id}", json={
            "tag_name": release.tag_name,
            "name": release.name,
            "body": release.body,
        })
        return to_release(data)
