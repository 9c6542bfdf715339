"""Helpers that let a user choose organisations and repositories on any provider."""
from dataclasses import dataclass

from . import log
from .errors import GitForgeError


def get_organizations(lister, username):
    """Organisation logins visible to username, with the username itself as a pseudo organisation."""
    names = [username]
    try:
        orgs = lister.list_organisations()
    except GitForgeError as e:
        log.debug(f"could not list organisations: {e}")
        orgs = []
    for org in orgs:
        if org.login:
            names.append(org.login)
    return sorted(names)


def pick_organisation(lister, username, prompter):
    """Returns the chosen organisation, or "" when the user picks their own account."""
    names = get_organizations(lister, username)
    if len(names) == 1:
        answer = names[0]
    else:
        answer = prompter.select_one("Which organisation do you want to use?", names, username)
    if answer == username:
        return ""
    return answer


def pick_repositories(provider, owner, message, select_all, filter, prompter):
    repos = {}
    for repo in provider.list_repositories(owner):
        if repo.name and (not filter or filter in repo.name):
            repos[repo.name] = repo
    if not repos:
        raise GitForgeError("No matching repositories could be found!")
    names = sorted(repos)
    defaults = names if select_all else []
    chosen = prompter.select_many(message, names, defaults)
    return [repos[n] for n in chosen if n in repos]


def get_repo_name(batch_mode, allow_existing, provider, default, owner, prompter):
    if batch_mode:
        return default or "dummy"

    def validate(value):
        if not value or not value.strip():
            return "Repository name is required"
        if allow_existing:
            return None
        try:
            provider.validate_repository_name(owner, value)
        except GitForgeError as e:
            return str(e)
        return None

    name = prompter.prompt_text("Enter the new repository name:", default, validate)
    if not name:
        raise GitForgeError("No repository name specified")
    return name


def get_owner(batch_mode, provider, username, prompter):
    if batch_mode:
        return username
    return pick_organisation(provider, username, prompter) or username


@dataclass
class CreateRepoData:
    organisation: str
    repo_name: str
    full_name: str
    private_repo: bool
    user: object
    provider: object

    def get_repository(self):
        return self.provider.get_repository(self.organisation, self.repo_name)

    def create_repository(self):
        return self.provider.create_repository(self.organisation, self.repo_name, self.private_repo)


def new_repo_data(provider, organisation, repo_name, private_repo=False):
    full_name = f"{organisation}/{repo_name}" if organisation else repo_name
    return CreateRepoData(
        organisation=organisation,
        repo_name=repo_name,
        full_name=full_name,
        private_repo=private_repo,
        user=provider.user_auth(),
        provider=provider,
    )
