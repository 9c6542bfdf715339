"""In-memory provider for tests and dry runs."""
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List

from .. import kinds, log
from ..auth.config import AuthServer, UserAuth
from ..errors import ApiError
from .base import GitProvider, overwrite_record
from .models import (
    ERROR, FAILURE, IN_PROGRESS, PENDING, PR_CLOSED, PR_MERGED, PR_OPEN, STOPPED, SUCCESS,
    Commit, Issue, Organisation, PullRequest, Repository, User,
)

FAKE_GIT_URL = "https://fake.git"


class FakeProviderHalt(NotImplementedError):
    """The fake does not model this operation."""


@dataclass
class FakeOrganisation:
    organisation: Organisation
    repositories: List[Repository] = field(default_factory=list)


@dataclass
class FakeRepoData:
    pull_requests: dict = field(default_factory=dict)
    commits: dict = field(default_factory=dict)
    statuses: dict = field(default_factory=dict)
    issues: dict = field(default_factory=dict)
    comments: list = field(default_factory=list)
    webhooks: list = field(default_factory=list)
    releases: list = field(default_factory=list)


class FakeProvider(GitProvider):
    KIND = kinds.FAKE
    STATE_MAP = {s: s for s in (PENDING, SUCCESS, ERROR, FAILURE, IN_PROGRESS, STOPPED)}

    def __init__(self, server=None, user_auth=None, client=None, poller=None, **kwargs):
        server = server or AuthServer(url=FAKE_GIT_URL, kind=kinds.FAKE, name="fake")
        user_auth = user_auth or UserAuth(username="fake-user", api_token="fake-token")
        super().__init__(server, user_auth, client=client, poller=poller, **kwargs)
        self.organisations = {}
        self.repo_data = {}
        self._next_id = 1

    @classmethod
    def with_repositories(cls, repositories, **kwargs):
        """Build a provider pre-populated from {"org": ["repo", ...]}."""
        provider = cls(**kwargs)
        for org, names in repositories.items():
            for name in names:
                provider.create_repository(org, name, False)
        return provider

    def _make_client(self):
        return None

    def _owner(self, org):
        return org or self.current_username()

    def _not_found(self, what):
        return ApiError(404, f"{self.server.url}/{what}", "Not Found")

    def _org(self, org):
        return self.organisations.get(self._owner(org))

    def _data(self, org, name):
        self.get_repository(org, name)
        return self.repo_data.setdefault((self._owner(org), name), FakeRepoData())

    def _id(self):
        value = self._next_id
        self._next_id += 1
        return value

    def halt(self, operation):
        raise FakeProviderHalt(f"{operation} is not implemented by the fake provider")

    # organisations and repositories

    def list_organisations(self):
        return [copy.deepcopy(o.organisation) for o in self.organisations.values()]

    def list_repositories(self, org):
        organisation = self._org(org)
        if organisation is None:
            return []
        return copy.deepcopy(organisation.repositories)

    def get_repository(self, org, name):
        organisation = self._org(org)
        if organisation is not None:
            for repo in organisation.repositories:
                if repo.name == name:
                    return copy.deepcopy(repo)
        raise self._not_found(f"{self._owner(org)}/{name}")

    def create_repository(self, org, name, private):
        owner = self._owner(org)
        organisation = self.organisations.get(owner)
        if organisation is None:
            organisation = FakeOrganisation(organisation=Organisation(login=owner))
            self.organisations[owner] = organisation
        if any(r.name == name for r in organisation.repositories):
            raise ApiError(422, f"{self.server.url}/{owner}/{name}", "name already exists on this account")
        repo = Repository(
            name=name,
            organisation=owner,
            clone_url=f"{self.server.url}/{owner}/{name}.git",
            html_url=f"{self.server.url}/{owner}/{name}",
            ssh_url=f"git@fake.git:{owner}/{name}.git",
            allow_merge_commit=True,
        )
        organisation.repositories.append(repo)
        return copy.deepcopy(repo)

    def rename_repository(self, org, name, new_name):
        organisation = self._org(org)
        if organisation is None:
            raise self._not_found(f"{self._owner(org)}/{name}")
        for repo in organisation.repositories:
            if repo.name == name:
                repo.name = new_name
                repo.clone_url = repo.clone_url.replace(f"/{name}.git", f"/{new_name}.git")
                repo.html_url = repo.html_url.rsplit("/", 1)[0] + f"/{new_name}"
                data = self.repo_data.pop((self._owner(org), name), None)
                if data is not None:
                    self.repo_data[(self._owner(org), new_name)] = data
                return copy.deepcopy(repo)
        raise self._not_found(f"{self._owner(org)}/{name}")

    def delete_repository(self, org, name):
        organisation = self._org(org)
        if organisation is None:
            raise self._not_found(f"{self._owner(org)}/{name}")
        for idx, repo in enumerate(organisation.repositories):
            if repo.name == name:
                del organisation.repositories[idx]
                self.repo_data.pop((self._owner(org), name), None)
                return
        raise self._not_found(f"{self._owner(org)}/{name}")

    def fork_repository(self, original_org, name, destination_org):
        self.get_repository(original_org, name)
        fork = self.create_repository(destination_org, name, False)
        organisation = self._org(destination_org)
        organisation.repositories[-1].fork = True
        fork.fork = True
        return fork

    def branch_archive_url(self, org, name, branch):
        return f"{self.server.url}/{org}/{name}/archive/{branch}.zip"

    def user_info(self, username):
        return User(login=username)

    def get_content(self, org, name, path, ref=""):
        self.halt("get_content")

    def add_collaborator(self, user, org, repo):
        self.halt("add_collaborator")

    # pull requests

    def add_commit(self, org, name, number, commit):
        """Test helper: attach a commit to a pull request."""
        data = self._data(org, name)
        data.commits.setdefault(number, []).append(commit)
        pr = data.pull_requests[number]
        pr.last_commit_sha = commit.sha

    def set_pull_request_state(self, org, name, number, state):
        """Test helper: move a pull request to open, closed or merged."""
        pr = self._data(org, name).pull_requests[number]
        now = datetime.now(timezone.utc)
        pr.state = state
        pr.merged = state == PR_MERGED
        if state in (PR_CLOSED, PR_MERGED):
            pr.closed_at = now
        if state == PR_MERGED:
            pr.merged_at = now
            pr.merge_commit_sha = f"merge-{number}"

    def create_pull_request(self, args):
        repo = args.repository
        owner = self._owner(repo.organisation)
        data = self._data(owner, repo.name)
        number = len(data.pull_requests) + 1
        pr = PullRequest(
            url=f"{self.server.url}/{owner}/{repo.name}/pull/{number}",
            owner=owner,
            repo=repo.name,
            number=number,
            title=args.title,
            body=args.body,
            state=PR_OPEN,
            mergeable=True,
            merged=False,
            head_ref=args.head,
            author=User(login=self.current_username()),
        )
        data.pull_requests[number] = pr
        return copy.deepcopy(pr)

    def get_pull_request(self, owner, repo, number):
        pr = self._data(owner, repo).pull_requests.get(number)
        if pr is None:
            raise self._not_found(f"{owner}/{repo}/pull/{number}")
        return copy.deepcopy(pr)

    def update_pull_request_status(self, pr):
        overwrite_record(pr, self.get_pull_request(pr.owner, pr.repo, pr.number))
        return pr

    def get_pull_request_commits(self, owner, repo, number):
        self.get_pull_request(owner, repo, number)
        return copy.deepcopy(self._data(owner, repo).commits.get(number, []))

    def merge_pull_request(self, pr, message):
        stored = self._data(pr.owner, pr.repo).pull_requests.get(pr.number)
        if stored is None:
            raise self._not_found(f"{pr.owner}/{pr.repo}/pull/{pr.number}")
        if stored.is_closed():
            raise ApiError(405, pr.url, "Pull Request is not mergeable")
        self.set_pull_request_state(pr.owner, pr.repo, pr.number, PR_MERGED)
        self._data(pr.owner, pr.repo).comments.append((pr.number, message))
        self.update_pull_request_status(pr)

    def add_pr_comment(self, pr, comment):
        self.create_issue_comment(pr.owner, pr.repo, pr.number, comment)

    def pull_request_last_commit_status(self, pr):
        statuses = self.list_commit_status(pr.owner, pr.repo, pr.last_commit_sha)
        if not statuses:
            return PENDING
        return statuses[-1].state

    # issues

    def search_issues(self, org, name, query=""):
        issues = list(self._data(org, name).issues.values())
        if query.startswith("state="):
            wanted = query.split("=", 1)[1]
            issues = [i for i in issues if i.state == wanted]
        elif query:
            issues = [i for i in issues if query.lower() in i.title.lower()]
        return copy.deepcopy(issues)

    def get_issue(self, org, name, number):
        issue = self._data(org, name).issues.get(number)
        return copy.deepcopy(issue) if issue is not None else None

    def create_issue(self, owner, repo, issue):
        data = self._data(owner, repo)
        number = len(data.issues) + 1
        stored = copy.deepcopy(issue)
        stored.owner = owner
        stored.repo = repo
        stored.number = number
        stored.key = str(number)
        stored.state = stored.state or "open"
        stored.url = self.issue_url(owner, repo, number, False)
        stored.created_at = stored.created_at or datetime.now(timezone.utc)
        data.issues[number] = stored
        return copy.deepcopy(stored)

    def close_issue(self, owner, repo, number, closed_at=None):
        """Test helper: close an issue."""
        issue = self._data(owner, repo).issues[number]
        issue.state = "closed"
        issue.closed_at = closed_at or datetime.now(timezone.utc)

    def create_issue_comment(self, owner, repo, number, comment):
        self._data(owner, repo).comments.append((number, comment))

    def comments(self, owner, repo):
        return list(self._data(owner, repo).comments)

    def issue_url(self, org, name, number, is_pull):
        kind = "pull" if is_pull else "issues"
        return f"{self.server.url}/{org}/{name}/{kind}/{number}"

    # commit statuses

    def list_commit_status(self, org, repo, sha):
        return copy.deepcopy(self._data(org, repo).statuses.get(sha, []))

    def update_commit_status(self, org, repo, sha, status):
        status = copy.deepcopy(status)
        status.state = self.to_status_state(status.state)
        if not status.id:
            status.id = str(self._id())
        self._data(org, repo).statuses.setdefault(sha, []).append(status)
        return copy.deepcopy(status)

    # webhooks

    def list_webhooks(self, owner, repo):
        return copy.deepcopy(self._data(owner, repo).webhooks)

    def _create_webhook(self, args):
        hook = copy.deepcopy(args)
        hook.id = self._id()
        log.info(f"Created fake webhook at {hook.url} for {hook.owner}/{hook.repo}")
        self._data(args.owner, args.repo).webhooks.append(hook)
        return copy.deepcopy(hook)

    def update_webhook(self, args):
        hooks = self._data(args.owner, args.repo).webhooks
        for idx, hook in enumerate(hooks):
            if hook.id == args.id:
                hooks[idx] = copy.deepcopy(args)
                return copy.deepcopy(args)
        raise self._not_found(f"{args.owner}/{args.repo}/hooks/{args.id}")

    # releases

    def list_releases(self, org, name):
        return copy.deepcopy(self._data(org, name).releases)

    def _create_release(self, owner, repo, release):
        stored = copy.deepcopy(release)
        stored.id = self._id()
        self._data(owner, repo).releases.append(stored)
        return copy.deepcopy(stored)

    def _edit_release(self, owner, repo, existing, release):
        releases = self._data(owner, repo).releases
        for idx, r in enumerate(releases):
            if r.tag_name == existing.tag_name:
                releases[idx] = copy.deepcopy(release)
                return copy.deepcopy(release)
        raise self._not_found(f"{owner}/{repo}/releases/{existing.tag_name}")


def fake_commit(sha, message="", author="fake-user"):
    return Commit(sha=sha, message=message, author=User(login=author), committer=User(login=author))


def fake_issue(title, body="", labels=None):
    return Issue(title=title, body=body, labels=labels or [])
