import click
import yaml

from .. import log
from ..auth import UserAuth
from ..auth.savers import config_to_dict
from ..utils import normalize_server_url
from .common import fail, get_prompter, get_service, handle_errors, is_batch_mode, kind_option, username_option

MASK = "****"


def masked_config(config):
    """The stored registry as a plain dict with every secret replaced by a mask."""
    data = config_to_dict(config)
    for server in data["servers"]:
        for user in server["users"]:
            for key in ("apitoken", "bearertoken"):
                if user[key]:
                    user[key] = MASK
    return data


@click.group(name='auth')
def auth():
    """Manage stored git server credentials"""
    pass


@auth.command(name='list')
@click.pass_context
@handle_errors
def list_servers(ctx):
    """List git servers and their users"""
    config = get_service(ctx).config
    if not config.servers:
        click.echo("No git servers are configured.")
        return
    for server in config.servers:
        marker = "*" if server.url == config.current_server else " "
        click.echo(f"{marker} {server.description()} [{server.kind or 'unknown'}]")
        for user in server.users:
            current = " (current)" if user.username == server.current_user else ""
            click.echo(f"    {user.username or '<bearer token>'}{current}")


@auth.command(name='show')
@click.pass_context
@handle_errors
def show(ctx):
    """Print the credential registry with secrets masked"""
    click.echo(yaml.dump(masked_config(get_service(ctx).config), default_flow_style=False, sort_keys=False))


@auth.command(name='add')
@click.option('--server', envvar='GIT_SERVER', required=True, help='Git server URL (env: GIT_SERVER)')
@kind_option
@click.option('--name', default='', help='Display name of the server')
@username_option
@click.option('--api-token', envvar='GIT_API_TOKEN', help='API token (env: GIT_API_TOKEN)')
@click.option('--bearer-token', envvar='GIT_BEARER_TOKEN', help='Bearer token (env: GIT_BEARER_TOKEN)')
@click.pass_context
@handle_errors
def add(ctx, server, kind, name, username, api_token, bearer_token):
    """Store a credential for a git server"""
    service = get_service(ctx)
    url = normalize_server_url(server)
    auth_server = service.save_server(url, name=name, kind=kind or "")

    user_auth = UserAuth(username=username or "", api_token=api_token or "", bearer_token=bearer_token or "")
    if user_auth.is_invalid():
        user_auth = service.config.edit_user_auth(
            auth_server.label(),
            user_auth,
            service.config.default_username,
            False,
            is_batch_mode(ctx),
            get_prompter(ctx),
        )
    service.save_user_auth(url, user_auth)
    log.info(f"Saved credentials for {log.color_info(user_auth.username or '<bearer token>')} "
             f"on {auth_server.description()}")


@auth.command(name='delete')
@click.option('--server', envvar='GIT_SERVER', required=True, help='Git server URL (env: GIT_SERVER)')
@username_option
@click.pass_context
@handle_errors
def delete(ctx, server, username):
    """Delete a user from a git server, or the whole server when no user is given"""
    service = get_service(ctx)
    url = normalize_server_url(server)
    auth_server = service.config.get_server(url)
    if auth_server is None:
        fail(f"No git server {url} is configured")

    if username:
        if auth_server.find_user(username) is None:
            fail(f"Server {auth_server.label()} has no user {username}")
        service.delete_user_auth(url, username)
        log.info(f"Deleted user {username} from {auth_server.label()}")
        return

    if not is_batch_mode(ctx):
        if not get_prompter(ctx).confirm(f"Delete {auth_server.description()} and all of its users?", False):
            click.echo("Aborted.")
            return
    service.delete_server(url)
    log.info(f"Deleted git server {auth_server.description()}")
