"""Vendor neutral records returned by every provider."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Union

PENDING = "pending"
SUCCESS = "success"
ERROR = "error"
FAILURE = "failure"
IN_PROGRESS = "in-progress"
STOPPED = "stopped"

STATUS_STATES = (PENDING, SUCCESS, ERROR, FAILURE, IN_PROGRESS, STOPPED)

PR_OPEN = "open"
PR_CLOSED = "closed"
PR_MERGED = "merged"


@dataclass
class Organisation:
    login: str


@dataclass
class Repository:
    name: str
    organisation: str = ""
    project: str = ""
    clone_url: str = ""
    ssh_url: str = ""
    html_url: str = ""
    language: str = ""
    fork: bool = False
    allow_merge_commit: bool = False
    stars: int = 0
    url: str = ""
    host: str = ""

    @property
    def full_name(self):
        return f"{self.organisation}/{self.name}" if self.organisation else self.name


@dataclass
class User:
    login: str
    name: str = ""
    email: str = ""
    avatar_url: str = ""
    url: str = ""


@dataclass
class PullRequest:
    url: str = ""
    owner: str = ""
    repo: str = ""
    number: Optional[int] = None
    title: str = ""
    body: str = ""
    state: Optional[str] = None
    mergeable: Optional[bool] = None
    merged: Optional[bool] = None
    head_ref: Optional[str] = None
    last_commit_sha: str = ""
    merge_commit_sha: Optional[str] = None
    closed_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    diff_url: Optional[str] = None
    author: Optional[User] = None
    version: Optional[int] = None

    def is_closed(self):
        return bool(self.merged) or self.closed_at is not None

    def number_string(self):
        if self.number is None:
            return "<none>"
        return f"#{self.number}"


@dataclass
class PullRequestArguments:
    title: str
    head: str
    base: str
    repository: Repository
    body: str = ""


@dataclass
class Commit:
    sha: str
    message: str = ""
    author: Optional[User] = None
    committer: Optional[User] = None
    url: str = ""
    branch: str = ""


@dataclass
class Label:
    name: str
    color: str = ""
    url: str = ""


@dataclass
class Issue:
    url: str = ""
    owner: str = ""
    repo: str = ""
    number: Optional[int] = None
    key: str = ""
    title: str = ""
    body: str = ""
    state: Optional[str] = None
    labels: List[Label] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    is_pull_request: bool = False
    user: Optional[User] = None
    closed_by: Optional[User] = None
    assignees: List[User] = field(default_factory=list)


@dataclass
class ReleaseAsset:
    name: str
    browser_download_url: str = ""
    content_type: str = ""
    download_count: int = 0


@dataclass
class Release:
    tag_name: str
    name: str = ""
    body: str = ""
    url: str = ""
    html_url: str = ""
    download_count: int = 0
    assets: List[ReleaseAsset] = field(default_factory=list)
    draft: bool = False
    prerelease: bool = False
    id: Optional[Union[int, str]] = None


@dataclass
class RepoStatus:
    state: str
    context: str = ""
    id: str = ""
    url: str = ""
    target_url: str = ""
    description: str = ""

    def is_success(self):
        return self.state == SUCCESS

    def is_failed(self):
        return self.state in (ERROR, FAILURE)


@dataclass
class WebhookArguments:
    owner: str
    repo: str
    url: str
    secret: str = ""
    id: Optional[Union[int, str]] = None
    events: List[str] = field(default_factory=list)


@dataclass
class FileContent:
    path: str
    type: str = "file"
    encoding: str = ""
    size: int = 0
    name: str = ""
    content: str = ""
    sha: str = ""
    url: str = ""
    html_url: str = ""
    download_url: str = ""


def is_repo_status_success(*statuses):
    """True when there is at least one status and all of them succeeded."""
    return bool(statuses) and all(s.is_success() for s in statuses)


def is_repo_status_failed(*statuses):
    return any(s.is_failed() for s in statuses)


def release_download_count(releases):
    return sum(r.download_count for r in releases)


def to_labels(names):
    return [Label(name=n) for n in names]


def _aware(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def filter_issues_closed_since(issues, cutoff):
    """Keep issues closed at or after the cutoff."""
    cutoff = _aware(cutoff)
    return [i for i in issues if i.closed_at is not None and _aware(i.closed_at) >= cutoff]


def parse_time(value):
    """Parse the ISO 8601 and epoch millisecond timestamps the vendors use."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _aware(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # gerrit sends "2013-02-01 09:59:32.126000000"
    if " " in text and "T" not in text:
        text = text.replace(" ", "T", 1)
    if "." in text:
        head, _, tail = text.partition(".")
        digits = ""
        rest = ""
        for i, ch in enumerate(tail):
            if not ch.isdigit():
                rest = tail[i:]
                break
            digits += ch
        text = f"{head}.{digits[:6]:0<6}{rest}" if digits else head + rest
    try:
        return _aware(datetime.fromisoformat(text))
    except ValueError:
        return None
