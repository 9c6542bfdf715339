import re

from .. import kinds, log
from ..errors import ApiError
from ..utils import url_join
from .base import GitProvider, overwrite_record
from .client import RestClient
from .models import (
    FAILURE, IN_PROGRESS, STOPPED, SUCCESS,
    Commit, Issue, Organisation, PullRequest, RepoStatus, Repository, User, WebhookArguments,
    parse_time,
)

RAW_EMAIL = re.compile(r"[^<]*<([^>]+)>")

# canonical state -> bitbucket build status
STATE_TO_BITBUCKET = {
    SUCCESS: "SUCCESSFUL",
    FAILURE: "FAILED",
    "error": "FAILED",
    IN_PROGRESS: "INPROGRESS",
    "pending": "INPROGRESS",
    STOPPED: "STOPPED",
}

CLOSED_ISSUE_STATES = ("resolved", "closed", "invalid", "duplicate", "wontfix")


def api_url_for(server_url):
    if kinds.url_host(server_url) == "bitbucket.org":
        return "https://api.bitbucket.org/2.0"
    return url_join(server_url, "2.0")


def _href(data, *path):
    for key in path:
        data = (data or {}).get(key)
    return data or ""


def email_from_raw(raw):
    """Pull the address out of "Name <address>"."""
    match = RAW_EMAIL.match(raw or "")
    return match.group(1) if match else ""


def to_repository(data):
    ssh_url = ""
    clone_url = ""
    for link in _href(data, "links", "clone") or []:
        if link.get("name") == "ssh":
            ssh_url = link.get("href", "")
        elif link.get("name") == "https":
            clone_url = link.get("href", "")
    html_url = _href(data, "links", "html", "href")
    if not clone_url and html_url:
        clone_url = html_url if html_url.endswith(".git") else html_url + ".git"
    if not clone_url:
        clone_url = ssh_url
    full_name = data.get("full_name") or ""
    return Repository(
        name=data.get("slug") or data.get("name", ""),
        organisation=full_name.split("/")[0] if "/" in full_name else "",
        project=_href(data, "project", "key"),
        clone_url=clone_url,
        ssh_url=ssh_url,
        html_url=html_url,
        language=data.get("language") or "",
        fork=data.get("parent") is not None,
        allow_merge_commit=True,
        url=_href(data, "links", "self", "href"),
    )


def to_user(data):
    if not data:
        return None
    return User(
        login=data.get("username") or data.get("nickname") or data.get("account_id") or "",
        name=data.get("display_name") or "",
        avatar_url=_href(data, "links", "avatar", "href"),
        url=_href(data, "links", "html", "href") or _href(data, "links", "self", "href"),
    )


def to_pull_request(data, owner, repo):
    state = data.get("state")
    merge_commit = data.get("merge_commit") or {}
    return PullRequest(
        url=_href(data, "links", "html", "href"),
        owner=owner,
        repo=repo,
        number=data.get("id"),
        title=data.get("title") or "",
        body=_href(data, "summary", "raw"),
        state=state,
        merged=state == "MERGED",
        head_ref=_href(data, "source", "branch", "name") or None,
        last_commit_sha=_href(data, "source", "commit", "hash"),
        merge_commit_sha=merge_commit.get("hash"),
        closed_at=parse_time(data.get("updated_on")) if state in ("MERGED", "DECLINED", "SUPERSEDED") else None,
        merged_at=parse_time(data.get("updated_on")) if state == "MERGED" else None,
        diff_url=_href(data, "links", "diff", "href") or None,
        author=to_user(data.get("author")),
    )


def to_issue(data, owner, repo):
    state = data.get("state")
    assignee = to_user(data.get("assignee"))
    return Issue(
        url=_href(data, "links", "html", "href") or _href(data, "links", "self", "href"),
        owner=owner,
        repo=repo,
        number=data.get("id"),
        key=str(data.get("id", "")),
        title=data.get("title") or "",
        body=_href(data, "content", "raw"),
        state=state,
        created_at=parse_time(data.get("created_on")),
        updated_at=parse_time(data.get("updated_on")),
        closed_at=parse_time(data.get("updated_on")) if state in CLOSED_ISSUE_STATES else None,
        user=to_user(data.get("reporter")),
        assignees=[assignee] if assignee else [],
    )


def to_commit(data):
    author = data.get("author") or {}
    raw = author.get("raw") or ""
    user = to_user(author.get("user")) or User(login="")
    user.email = email_from_raw(raw)
    if not user.name:
        user.name = raw.split("<")[0].strip()
    return Commit(
        sha=data.get("hash", ""),
        message=data.get("message") or "",
        author=user,
        committer=user,
        url=_href(data, "links", "html", "href"),
    )


class BitbucketCloudProvider(GitProvider):
    KIND = kinds.BITBUCKET_CLOUD
    STATE_MAP = {
        "SUCCESSFUL": SUCCESS,
        "FAILED": FAILURE,
        "INPROGRESS": IN_PROGRESS,
        "STOPPED": STOPPED,
    }

    def _make_client(self):
        auth = self._user_auth
        if auth.bearer_token:
            return RestClient(api_url_for(self.server.url),
                              headers={"Authorization": f"Bearer {auth.bearer_token}"}, timeout=self.http_timeout)
        return RestClient(api_url_for(self.server.url), auth=(auth.username, auth.api_token), timeout=self.http_timeout)

    def _owner(self, org):
        return org or self.current_username()

    def _values(self, path, params=None):
        """Collect "values" from every page by following the "next" URL in the body."""
        results = []
        page = self.client.get(path, params=params) or {}
        while True:
            results.extend(page.get("values") or [])
            next_url = page.get("next")
            if not next_url:
                return results
            page = self.client.get(next_url) or {}

    @classmethod
    def token_url_for(cls, server):
        return url_join(server.url, "/account/settings/app-passwords/new")

    # organisations and repositories

    def list_organisations(self):
        workspaces = self._values("/workspaces", params={"role": "member"})
        return [Organisation(login=w.get("slug") or w.get("username", "")) for w in workspaces]

    def list_repositories(self, org):
        repos = self._values(f"/repositories/{self._owner(org)}")
        return [to_repository(r) for r in repos]

    def get_repository(self, org, name):
        return to_repository(self.client.get(f"/repositories/{self._owner(org)}/{name}"))

    def create_repository(self, org, name, private):
        log.info(f"Creating repo '{name}' in workspace '{self._owner(org)}'...")
        data = self.client.post(f"/repositories/{self._owner(org)}/{name}", json={
            "scm": "git",
            "is_private": private,
        })
        return to_repository(data)

    def rename_repository(self, org, name, new_name):
        data = self.client.put(f"/repositories/{self._owner(org)}/{name}", json={"name": new_name})
        return to_repository(data)

    def delete_repository(self, org, name):
        self.client.delete(f"/repositories/{self._owner(org)}/{name}")

    def fork_repository(self, original_org, name, destination_org):
        payload = {}
        if destination_org:
            payload["workspace"] = {"slug": destination_org}
        data = self.client.post(f"/repositories/{original_org}/{name}/forks", json=payload)
        created = to_repository(data)
        owner = created.organisation or self._owner(destination_org)
        slug = created.name or name
        ok, repo = self._wait_for(lambda: self.get_repository(owner, slug), f"fork {owner}/{slug}")
        return repo if ok else created

    def branch_archive_url(self, org, name, branch):
        return url_join(self.server.url, org, name, "get", f"{branch}.zip")

    def user_info(self, username):
        try:
            user = to_user(self.client.get(f"/users/{username}"))
        except ApiError as e:
            log.error(f"Unable to fetch user info for {username} due to {e}")
            return None
        if user is None:
            return None
        user.login = username
        return user

    def add_collaborator(self, user, org, repo):
        log.info(f"Adding collaborators is not implemented for Bitbucket. Please add user {user} to {org}/{repo} by hand.")

    # pull requests

    def create_pull_request(self, args):
        repo = args.repository
        owner = self._owner(repo.organisation)
        data = self.client.post(f"/repositories/{owner}/{repo.name}/pullrequests", json={
            "title": args.title,
            "description": args.body,
            "source": {"branch": {"name": args.head}, "repository": {"full_name": f"{owner}/{repo.name}"}},
            "destination": {"branch": {"name": args.base}},
        })
        created = to_pull_request(data, owner, repo.name)
        ok, fresh = self._wait_for(
            lambda: self.get_pull_request(owner, repo.name, created.number),
            f"pull request {created.number_string()} on {owner}/{repo.name}")
        return fresh if ok else created

    def get_pull_request(self, owner, repo, number):
        data = self.client.get(f"/repositories/{owner}/{repo}/pullrequests/{number}")
        return to_pull_request(data, owner, repo)

    def update_pull_request_status(self, pr):
        if pr.number is None:
            raise ValueError(f"pull request {pr.url} has no number")
        fresh = self.get_pull_request(pr.owner, pr.repo, pr.number)
        commits = self.client.get(f"/repositories/{pr.owner}/{pr.repo}/pullrequests/{pr.number}/commits")
        values = (commits or {}).get("values") or []
        if values:
            fresh.last_commit_sha = values[0].get("hash", fresh.last_commit_sha)
        overwrite_record(pr, fresh)
        return pr

    def get_pull_request_commits(self, owner, repo, number):
        commits = self._values(f"/repositories/{owner}/{repo}/pullrequests/{number}/commits")
        return [to_commit(c) for c in commits]

    def merge_pull_request(self, pr, message):
        self.client.post(f"/repositories/{pr.owner}/{pr.repo}/pullrequests/{pr.number}/merge", json={
            "type": "pullrequest_merge_parameters",
            "message": message,
        })

        def merged():
            fresh = self.get_pull_request(pr.owner, pr.repo, pr.number)
            return fresh if fresh.merged else None

        ok, fresh = self._wait_for(merged, f"merge of pull request {pr.number_string()} on {pr.owner}/{pr.repo}")
        if ok:
            overwrite_record(pr, fresh)

    def add_pr_comment(self, pr, comment):
        self.client.post(f"/repositories/{pr.owner}/{pr.repo}/pullrequests/{pr.number}/comments",
                         json={"content": {"raw": comment}})

    def pull_request_last_commit_status(self, pr):
        statuses = self._values(f"/repositories/{pr.owner}/{pr.repo}/commit/{pr.last_commit_sha}/statuses")
        # nothing has been built yet
        if not statuses:
            return SUCCESS
        latest = max(statuses, key=lambda s: parse_time(s.get("created_on")) or parse_time(0))
        return self.to_status_state(latest.get("state"))

    # issues

    def search_issues(self, org, name, query=""):
        owner = self._owner(org)
        params = None
        if query.startswith("state="):
            if query.split("=", 1)[1] == "closed":
                params = {"q": " OR ".join(f'state="{s}"' for s in CLOSED_ISSUE_STATES)}
            else:
                params = {"q": f'state="{query.split("=", 1)[1]}"'}
        elif query:
            params = {"q": f'title ~ "{query}"'}
        issues = self._values(f"/repositories/{owner}/{name}/issues", params=params)
        return [to_issue(i, owner, name) for i in issues]

    def get_issue(self, org, name, number):
        owner = self._owner(org)
        try:
            return to_issue(self.client.get(f"/repositories/{owner}/{name}/issues/{number}"), owner, name)
        except ApiError as e:
            if e.is_not_found():
                return None
            raise

    def create_issue(self, owner, repo, issue):
        data = self.client.post(f"/repositories/{owner}/{repo}/issues", json={
            "title": issue.title,
            "content": {"raw": issue.body},
        })
        # the create response lacks the html link
        return self.get_issue(owner, repo, data.get("id"))

    def create_issue_comment(self, owner, repo, number, comment):
        self.client.post(f"/repositories/{owner}/{repo}/issues/{number}/comments", json={"content": {"raw": comment}})

    def issue_url(self, org, name, number, is_pull):
        kind = "pull-requests" if is_pull else "issues"
        return url_join(self.server.url, org, name, kind, str(number))

    # commit statuses

    def _to_status(self, data):
        return RepoStatus(
            id=data.get("key") or "",
            context=data.get("name") or data.get("key") or "",
            url=_href(data, "links", "commit", "href"),
            state=self.to_status_state(data.get("state")),
            target_url=data.get("url") or _href(data, "links", "self", "href"),
            description=data.get("description") or "",
        )

    def list_commit_status(self, org, repo, sha):
        return [self._to_status(s) for s in self._values(f"/repositories/{org}/{repo}/commit/{sha}/statuses")]

    def update_commit_status(self, org, repo, sha, status):
        data = self.client.post(f"/repositories/{org}/{repo}/commit/{sha}/statuses/build", json={
            "key": status.id or status.context,
            "name": status.context,
            "state": STATE_TO_BITBUCKET.get(status.state, "INPROGRESS"),
            "url": status.target_url,
            "description": status.description,
        })
        return self._to_status(data)

    # webhooks

    def list_webhooks(self, owner, repo):
        hooks = self._values(f"/repositories/{owner}/{repo}/hooks")
        return [WebhookArguments(id=h.get("uuid"), owner=owner, repo=repo, url=h.get("url", ""),
                                 events=list(h.get("events") or [])) for h in hooks]

    def _hook_payload(self, args):
        payload = {
            "description": "gitforge webhook",
            "url": args.url,
            "active": True,
            "events": args.events or ["repo:push", "pullrequest:created", "pullrequest:updated"],
        }
        if args.secret:
            payload["secret"] = args.secret
        return payload

    def _create_webhook(self, args):
        data = self.client.post(f"/repositories/{args.owner}/{args.repo}/hooks", json=self._hook_payload(args))
        return WebhookArguments(id=data.get("uuid"), owner=args.owner, repo=args.repo, url=data.get("url", args.url),
                                secret=args.secret, events=list(data.get("events") or []))

    def update_webhook(self, args):
        if args.id is None:
            raise ValueError("webhook id is required to update a webhook")
        data = self.client.put(f"/repositories/{args.owner}/{args.repo}/hooks/{args.id}",
                               json=self._hook_payload(args))
        return WebhookArguments(id=data.get("uuid"), owner=args.owner, repo=args.repo, url=data.get("url", args.url),
                                secret=args.secret, events=list(data.get("events") or []))

    # releases

    def list_releases(self, org, name):
        log.warn("Bitbucket Cloud doesn't support releases")
        return []

    def update_release(self, owner, repo, tag, release):
        log.warn("Bitbucket Cloud doesn't support releases")
        return None
