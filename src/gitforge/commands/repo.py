import click

from .. import log
from ..pickers import get_owner, get_repo_name, new_repo_data
from ..providers.models import WebhookArguments
from .common import (
    get_prompter, handle_errors, is_batch_mode, kind_option, resolve_provider, server_option, username_option,
)


@click.group(name='repo')
def repo():
    """Work with repositories on any configured git server"""
    pass


@repo.command(name='list')
@server_option
@kind_option
@username_option
@click.option('--org', default='', help='Organisation, defaults to the user account')
@click.option('--filter', 'name_filter', default='', help='Only list repositories whose name contains this text')
@click.pass_context
@handle_errors
def list_repos(ctx, server, kind, username, org, name_filter):
    """List repositories"""
    provider = resolve_provider(ctx, server, kind, username)
    repos = [r for r in provider.list_repositories(org) if not name_filter or name_filter in r.name]
    for r in sorted(repos, key=lambda r: r.name):
        click.echo(f"{r.full_name}\t{r.html_url or r.clone_url}")


@repo.command(name='validate')
@server_option
@kind_option
@username_option
@click.option('--org', default='', help='Organisation, defaults to the user account')
@click.option('--name', required=True, help='Repository name to check')
@click.pass_context
@handle_errors
def validate(ctx, server, kind, username, org, name):
    """Check that a repository name is still free"""
    provider = resolve_provider(ctx, server, kind, username)
    owner = org or provider.current_username()
    provider.validate_repository_name(owner, name)
    click.echo(f"Repository name {owner}/{name} is available")


@repo.command(name='create')
@server_option
@kind_option
@username_option
@click.option('--org', default='', help='Organisation, asked for when omitted')
@click.option('--name', default='', help='Repository name, asked for when omitted')
@click.option('--private', is_flag=True, help='Create a private repository')
@click.option('--webhook-url', required=False, help='Webhook URL')
@click.option('--webhook-secret', envvar='WEBHOOK_SECRET', default='', help='Webhook Secret (env: WEBHOOK_SECRET)')
@click.pass_context
@handle_errors
def create(ctx, server, kind, username, org, name, private, webhook_url, webhook_secret):
    """Create a repository and optionally its webhook"""
    batch_mode = is_batch_mode(ctx)
    prompter = get_prompter(ctx)
    provider = resolve_provider(ctx, server, kind, username)
    git_username = provider.current_username()

    owner = org or get_owner(batch_mode, provider, git_username, prompter)
    if name:
        provider.validate_repository_name(owner, name)
    else:
        name = get_repo_name(batch_mode, False, provider, "", owner, prompter)

    organisation = "" if owner == git_username else owner
    data = new_repo_data(provider, organisation, name, private)
    log.info(f"Creating repository {log.color_info(data.full_name)} on {provider.label()}")
    created = data.create_repository()

    if webhook_url:
        provider.create_webhook(WebhookArguments(owner=owner, repo=name, url=webhook_url, secret=webhook_secret))

    click.echo(f"Created repository {created.full_name}: {created.html_url or created.clone_url}")
