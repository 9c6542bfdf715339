from .. import kinds, log
from ..errors import ApiError
from .base import GitProvider, overwrite_record
from .client import RestClient
from .models import (
    ERROR, FAILURE, PENDING, SUCCESS,
    Commit, FileContent, Issue, Label, Organisation, PullRequest, Release, ReleaseAsset,
    RepoStatus, Repository, User, WebhookArguments, parse_time,
)


def api_url_for(server_url):
    host = kinds.url_host(server_url)
    if host == "github.com":
        return "https://api.github.com"
    return server_url.rstrip("/") + "/api/v3"


def to_repository(data):
    owner = data.get("owner") or {}
    return Repository(
        name=data.get("name", ""),
        organisation=owner.get("login", ""),
        clone_url=data.get("clone_url") or "",
        ssh_url=data.get("ssh_url") or "",
        html_url=data.get("html_url") or "",
        language=data.get("language") or "",
        fork=bool(data.get("fork")),
        allow_merge_commit=bool(data.get("allow_merge_commit")),
        stars=data.get("stargazers_count") or 0,
        url=data.get("url") or "",
    )


def to_user(data):
    if not data:
        return None
    return User(
        login=data.get("login", ""),
        name=data.get("name") or "",
        email=data.get("email") or "",
        avatar_url=data.get("avatar_url") or "",
        url=data.get("html_url") or "",
    )


def to_pull_request(data, owner, repo):
    head = data.get("head") or {}
    return PullRequest(
        url=data.get("html_url") or "",
        owner=owner,
        repo=repo,
        number=data.get("number"),
        title=data.get("title") or "",
        body=data.get("body") or "",
        state=data.get("state"),
        mergeable=data.get("mergeable"),
        merged=data.get("merged"),
        head_ref=head.get("ref"),
        last_commit_sha=head.get("sha") or "",
        merge_commit_sha=data.get("merge_commit_sha"),
        closed_at=parse_time(data.get("closed_at")),
        merged_at=parse_time(data.get("merged_at")),
        diff_url=data.get("diff_url"),
        author=to_user(data.get("user")),
    )


def to_issue(data, owner, repo):
    return Issue(
        url=data.get("html_url") or "",
        owner=owner,
        repo=repo,
        number=data.get("number"),
        key=str(data.get("number", "")),
        title=data.get("title") or "",
        body=data.get("body") or "",
        state=data.get("state"),
        labels=[Label(name=l.get("name", ""), color=l.get("color") or "", url=l.get("url") or "")
                for l in data.get("labels") or []],
        created_at=parse_time(data.get("created_at")),
        updated_at=parse_time(data.get("updated_at")),
        closed_at=parse_time(data.get("closed_at")),
        is_pull_request="pull_request" in data,
        user=to_user(data.get("user")),
        closed_by=to_user(data.get("closed_by")),
        assignees=[to_user(a) for a in data.get("assignees") or []],
    )


def to_release(data):
    assets = [
        ReleaseAsset(
            name=a.get("name", ""),
            browser_download_url=a.get("browser_download_url") or "",
            content_type=a.get("content_type") or "",
            download_count=a.get("download_count") or 0,
        )
        for a in data.get("assets") or []
    ]
    return Release(
        id=data.get("id"),
        tag_name=data.get("tag_name", ""),
        name=data.get("name") or "",
        body=data.get("body") or "",
        url=data.get("url") or "",
        html_url=data.get("html_url") or "",
        download_count=sum(a.download_count for a in assets),
        assets=assets,
        draft=bool(data.get("draft")),
        prerelease=bool(data.get("prerelease")),
    )


def to_webhook(data, owner, repo):
    config = data.get("config") or {}
    return WebhookArguments(
        id=data.get("id"),
        owner=owner,
        repo=repo,
        url=config.get("url", ""),
        secret=config.get("secret") or "",
        events=list(data.get("events") or []),
    )


def to_commit(data, branch=""):
    commit = data.get("commit") or {}
    author = commit.get("author") or {}
    committer = commit.get("committer") or {}
    return Commit(
        sha=data.get("sha", ""),
        message=commit.get("message") or "",
        author=User(login=(data.get("author") or {}).get("login", ""),
                    name=author.get("name") or "", email=author.get("email") or ""),
        committer=User(login=(data.get("committer") or {}).get("login", ""),
                       name=committer.get("name") or "", email=committer.get("email") or ""),
        url=data.get("html_url") or data.get("url") or "",
        branch=branch,
    )


class GitHubProvider(GitProvider):
    KIND = kinds.GITHUB
    STATE_MAP = {
        "pending": PENDING,
        "success": SUCCESS,
        "error": ERROR,
        "failure": FAILURE,
    }

    def _make_client(self):
        auth = self._user_auth
        if auth.bearer_token:
            authorization = f"Bearer {auth.bearer_token}"
        else:
            authorization = f"token {auth.api_token}"
        return RestClient(api_url_for(self.server.url), headers={
            "Authorization": authorization,
            "Accept": "application/vnd.github.v3+json",
        }, timeout=self.http_timeout)

    def _owner(self, org):
        return org or self.current_username()

    @classmethod
    def token_url_for(cls, server):
        scopes = "repo,read:user,read:org,user:email,write:repo_hook,delete_repo"
        return server.url.rstrip("/") + "/settings/tokens/new?scopes=" + scopes

    # organisations and repositories

    def list_organisations(self):
        orgs = self.client.get_all("/user/orgs")
        return [Organisation(login=o["login"]) for o in orgs if o.get("login")]

    def list_repositories(self, org):
        if not org or org == self.current_username():
            repos = self.client.get_all("/user/repos", params={"affiliation": "owner"})
        else:
            repos = self.client.get_all(f"/orgs/{org}/repos")
        return [to_repository(r) for r in repos]

    def get_repository(self, org, name):
        return to_repository(self.client.get(f"/repos/{self._owner(org)}/{name}"))

    def create_repository(self, org, name, private):
        payload = {"name": name, "private": private, "auto_init": False}
        if org and org != self.current_username():
            log.info(f"Creating repo '{name}' in organization '{org}'...")
            data = self.client.post(f"/orgs/{org}/repos", json=payload)
        else:
            log.info(f"Creating repo '{name}' for user '{self.current_username()}'...")
            data = self.client.post("/user/repos", json=payload)
        return to_repository(data)

    def rename_repository(self, org, name, new_name):
        data = self.client.patch(f"/repos/{self._owner(org)}/{name}", json={"name": new_name})
        return to_repository(data)

    def delete_repository(self, org, name):
        self.client.delete(f"/repos/{self._owner(org)}/{name}")

    def fork_repository(self, original_org, name, destination_org):
        payload = {}
        if destination_org:
            payload["organization"] = destination_org
        created = to_repository(self.client.post(f"/repos/{original_org}/{name}/forks", json=payload))
        owner = created.organisation or self._owner(destination_org)
        log.info(f"Waiting for the fork of {owner}/{name} to appear...")
        ok, repo = self._wait_for(lambda: self.get_repository(owner, created.name or name), f"fork {owner}/{name}")
        return repo if ok else created

    def branch_archive_url(self, org, name, branch):
        return f"{self.server.url.rstrip('/')}/{org}/{name}/archive/{branch}.zip"

    def user_info(self, username):
        return to_user(self.client.get(f"/users/{username}"))

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
        self.client.put(f"/repos/{self._owner(org)}/{repo}/collaborators/{user}", json={"permission": "push"})

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
        fresh = self.get_pull_request(pr.owner, pr.repo, pr.number)
        overwrite_record(pr, fresh)
        return pr

    def get_pull_request_commits(self, owner, repo, number):
        commits = self.client.get_all(f"/repos/{owner}/{repo}/pulls/{number}/commits")
        return [to_commit(c) for c in commits]

    def merge_pull_request(self, pr, message):
        self.client.put(f"/repos/{pr.owner}/{pr.repo}/pulls/{pr.number}/merge", json={"commit_message": message})

        def merged():
            fresh = self.get_pull_request(pr.owner, pr.repo, pr.number)
            return fresh if fresh.merged else None

        ok, fresh = self._wait_for(merged, f"merge of pull request {pr.number_string()} on {pr.owner}/{pr.repo}")
        if ok:
            overwrite_record(pr, fresh)

    def add_pr_comment(self, pr, comment):
        self.create_issue_comment(pr.owner, pr.repo, pr.number, comment)

    def pull_request_last_commit_status(self, pr):
        data = self.client.get(f"/repos/{pr.owner}/{pr.repo}/commits/{pr.last_commit_sha}/status")
        return self.to_status_state(data.get("state"))

    # issues

    def search_issues(self, org, name, query=""):
        owner = self._owner(org)
        q = f"repo:{owner}/{name} is:issue"
        if query:
            q += " " + query.replace("state=", "state:")
        items = self.client.get_all("/search/issues", params={"q": q}, items_key="items")
        return [to_issue(i, owner, name) for i in items]

    def get_issue(self, org, name, number):
        owner = self._owner(org)
        try:
            return to_issue(self.client.get(f"/repos/{owner}/{name}/issues/{number}"), owner, name)
        except ApiError as e:
            if e.is_not_found():
                return None
            raise

    def create_issue(self, owner, repo, issue):
        payload = {"title": issue.title, "body": issue.body, "labels": [l.name for l in issue.labels]}
        if issue.assignees:
            payload["assignees"] = [a.login for a in issue.assignees]
        return to_issue(self.client.post(f"/repos/{owner}/{repo}/issues", json=payload), owner, repo)

    def create_issue_comment(self, owner, repo, number, comment):
        self.client.post(f"/repos/{owner}/{repo}/issues/{number}/comments", json={"body": comment})

    def issue_url(self, org, name, number, is_pull):
        kind = "pull" if is_pull else "issues"
        return f"{self.server.url.rstrip('/')}/{org}/{name}/{kind}/{number}"

    # commit statuses

    def list_commit_status(self, org, repo, sha):
        statuses = self.client.get_all(f"/repos/{org}/{repo}/commits/{sha}/statuses")
        return [
            RepoStatus(
                id=str(s.get("id", "")),
                context=s.get("context") or "",
                url=s.get("url") or "",
                state=self.to_status_state(s.get("state")),
                target_url=s.get("target_url") or "",
                description=s.get("description") or "",
            )
            for s in statuses
        ]

    def update_commit_status(self, org, repo, sha, status):
        data = self.client.post(f"/repos/{org}/{repo}/statuses/{sha}", json={
            "state": status.state,
            "target_url": status.target_url,
            "description": status.description,
            "context": status.context,
        })
        return RepoStatus(
            id=str(data.get("id", "")),
            context=data.get("context") or "",
            url=data.get("url") or "",
            state=self.to_status_state(data.get("state")),
            target_url=data.get("target_url") or "",
            description=data.get("description") or "",
        )

    # webhooks

    def list_webhooks(self, owner, repo):
        return [to_webhook(h, owner, repo) for h in self.client.get_all(f"/repos/{owner}/{repo}/hooks")]

    def _hook_payload(self, args):
        return {
            "name": "web",
            "active": True,
            "events": args.events or ["*"],
            "config": {
                "url": args.url,
                "content_type": "json",
                "secret": args.secret,
                "insecure_ssl": "0",
            },
        }

    def _create_webhook(self, args):
        data = self.client.post(f"/repos/{args.owner}/{args.repo}/hooks", json=self._hook_payload(args))
        return to_webhook(data, args.owner, args.repo)

    def update_webhook(self, args):
        if args.id is None:
            raise ValueError("webhook id is required to update a webhook")
        data = self.client.patch(f"/repos/{args.owner}/{args.repo}/hooks/{args.id}", json=self._hook_payload(args))
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
