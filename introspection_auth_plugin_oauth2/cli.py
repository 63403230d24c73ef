"""
CLI commands for OAuth2 introspection plugin management.

These commands help with setup, debugging, and maintenance of the
introspection integration. They are available as ``introspection-auth``
and, once the plugin is attached to a Flask app, as ``flask introspection``.
"""

import os

import click
import httpx

from .config import HOME_ENV_VAR, IntrospectionConfig


@click.group("introspection")
@click.option(
    "--home",
    envvar=HOME_ENV_VAR,
    default=os.getcwd,
    type=click.Path(file_okay=False),
    help="Host home directory containing conf/introspection.conf.",
)
@click.pass_context
def introspection_cli(ctx, home):
    """OAuth2 introspection authentication management commands."""
    ctx.ensure_object(dict)
    ctx.obj["home"] = home


def _load_config(ctx) -> IntrospectionConfig:
    return IntrospectionConfig.load(ctx.obj["home"])


@introspection_cli.command("show-config")
@click.pass_context
def show_config(ctx):
    """Display current introspection configuration."""
    config = _load_config(ctx)

    click.echo("=== Verification Modes ===")
    click.echo(f"Validate via introspection: {config.validate_introspection}")
    click.echo(f"Groups from user info: {config.get_groups_from_user_info}")

    click.echo("\n=== Endpoints ===")
    click.echo(f"Introspection URL: {config.introspection_uri or 'Not configured'}")
    click.echo(f"User info URL: {config.user_info_uri or 'Not configured'}")
    click.echo(f"Client ID: {config.client_id or 'Not configured'}")
    click.echo(f"Client Secret: {'Configured' if config.client_secret else 'Not configured'}")

    click.echo("\n=== Claims ===")
    click.echo(f"Username claim: {config.username_claim}")
    click.echo(f"Groups claim: {config.groups_claim}")

    click.echo("\n=== Group Mapping ===")
    for group, role in config.group_to_role_mapping.items():
        click.echo(f"  {group} -> {role}")


@introspection_cli.command("validate-config")
@click.pass_context
def validate_config(ctx):
    """Validate the current configuration."""
    config = _load_config(ctx)
    errors = []
    warnings = []

    if not config.is_functional:
        errors.append(
            "Either auth.oauth.validate_introspection or "
            "auth.oauth.get_groups_from_user_info must be true"
        )
    if config.validate_introspection and not config.introspection_uri:
        errors.append("auth.oauth.introspection_uri not configured")
    if config.get_groups_from_user_info and not config.user_info_uri:
        errors.append("auth.oauth.user_info_uri not configured")

    if config.validate_introspection and config.get_groups_from_user_info:
        warnings.append("Both modes enabled: claims are taken from the user info response")
    if config.client_id and config.client_secret is None:
        warnings.append("auth.oauth.client_id set without auth.oauth.client_secret")
    if not config.group_to_role_mapping:
        warnings.append("No group to role mapping configured (users get no roles)")

    # Output results
    if warnings:
        click.echo("=== Warnings ===")
        for warning in warnings:
            click.echo(f"  ! {warning}")

    if errors:
        click.echo("\n=== Errors ===")
        for error in errors:
            click.echo(f"  x {error}")
        click.echo(f"\nConfiguration validation failed with {len(errors)} error(s)")
        ctx.exit(1)

    click.echo("\n[OK] Configuration is valid!")


@introspection_cli.command("test-connection")
@click.pass_context
def test_connection(ctx):
    """Test connectivity to the authorization server."""
    config = _load_config(ctx)

    click.echo("=== Testing Authorization Server Connectivity ===\n")

    endpoints = [
        ("Introspection URL", "POST", config.introspection_uri),
        ("User info URL", "GET", config.user_info_uri),
    ]
    for label, method, url in endpoints:
        if not url:
            click.echo(f"[SKIP] {label} not configured")
            continue
        try:
            with httpx.Client() as client:
                # Any HTTP response (even 401) means the endpoint is reachable
                resp = client.request(method, url, timeout=10)
                click.echo(f"[OK] {label} reachable: {url} (HTTP {resp.status_code})")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            click.echo(f"[FAIL] {label}: {e}")


@introspection_cli.command("verify")
@click.argument("token")
@click.pass_context
def verify_token(ctx, token):
    """Authenticate TOKEN and show the resulting user and roles."""
    from .errors import AuthenticationDenied
    from .plugin import HostOperations, IntrospectionAuthPlugin

    plugin = IntrospectionAuthPlugin()
    plugin.initialize(HostOperations(home=ctx.obj["home"]))

    try:
        auth_info = plugin.authenticate_and_authorize(token)
    except AuthenticationDenied as e:
        click.echo(f"Authentication denied ({e.kind.value}): {e.message}", err=True)
        ctx.exit(1)

    click.echo(f"Username: {auth_info.username}")
    click.echo(f"Roles: {', '.join(sorted(auth_info.roles)) or '(none)'}")


@introspection_cli.command("map-groups")
@click.argument("groups", nargs=-1, required=True)
@click.pass_context
def map_groups_command(ctx, groups):
    """Show the roles the configured mapping grants for GROUPS."""
    from .role_mapper import map_groups

    config = _load_config(ctx)
    roles = map_groups(groups, config.group_to_role_mapping)

    for group in groups:
        role = config.group_to_role_mapping.get(group)
        click.echo(f"  {group} -> {role or '(unmapped)'}")
    click.echo(f"Roles: {', '.join(sorted(roles)) or '(none)'}")
