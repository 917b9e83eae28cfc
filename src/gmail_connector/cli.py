#!/usr/bin/env python3
# src/gmail_connector/cli.py

import logging
from datetime import datetime, timezone

import click
from dotenv import load_dotenv

from .config       import GmailConfig
from .errors       import GmailAuthError
from .manager      import TokenLifecycleManager
from .oauth_client import GoogleOAuthClient
from .storage      import token_store_for


def _build_manager(user, connect=False) -> TokenLifecycleManager:
    """
    Manager for `user` using settings from the environment. With
    `connect`, a stored token is refreshed straight away if it has expired.
    """
    config = GmailConfig.from_env()
    if connect:
        return TokenLifecycleManager.connect(config, user=user)
    return TokenLifecycleManager(GoogleOAuthClient(config), token_store_for(config, user), user)


def _format_expiry(token) -> str:
    if token is None or token.expires_at is None:
        return "unknown"
    return datetime.fromtimestamp(token.expires_at, timezone.utc).isoformat()


@click.group()
@click.option("-u", "--user", default=None, help="Gmail address the token belongs to")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx, user, verbose):
    """Gmail OAuth token manager."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s"
    )
    ctx.ensure_object(dict)
    ctx.obj["user"] = user


@cli.command("auth-url")
@click.option("--state", default=None, help="Opaque state echoed back on the redirect")
@click.pass_context
def auth_url(ctx, state):
    """Print the Google consent URL to visit."""
    manager = _build_manager(ctx.obj["user"])
    click.echo(manager.client.authorization_url(state=state))


@cli.command()
@click.argument("code")
@click.pass_context
def authorize(ctx, code):
    """Exchange an authorization CODE for a token and store it."""
    manager = _build_manager(ctx.obj["user"])
    try:
        token = manager.exchange_authorization_code(code)
    except GmailAuthError as e:
        raise click.ClickException(str(e))
    click.echo(f"Authorized {manager.user or 'unknown account'} (expires {_format_expiry(token)})")


@cli.command()
@click.pass_context
def refresh(ctx):
    """Refresh the stored token if it has expired."""
    try:
        manager = _build_manager(ctx.obj["user"], connect=True)
        token = manager.ensure_fresh()
    except GmailAuthError as e:
        raise click.ClickException(str(e))
    click.echo(f"Token valid until {_format_expiry(token)}")


@cli.command()
@click.pass_context
def status(ctx):
    """Show whether a token is stored and still fresh."""
    manager = _build_manager(ctx.obj["user"])
    if not manager.has_stored_token():
        click.echo("No stored token.")
        return

    token = manager.current_token()
    state = "expired" if manager.is_expired() else "fresh"
    click.echo(f"Account:       {token.email or manager.user or 'unknown'}")
    click.echo(f"State:         {state} (expires {_format_expiry(token)})")
    click.echo(f"Refresh token: {'yes' if token.refresh_token else 'no'}")


@cli.command()
@click.pass_context
def profile(ctx):
    """Print the Gmail address the token is for."""
    try:
        manager = _build_manager(ctx.obj["user"], connect=True)
        me = manager.profile()
    except GmailAuthError as e:
        raise click.ClickException(str(e))
    click.echo(me.get("emailAddress", "unknown"))


@cli.command()
@click.pass_context
def revoke(ctx):
    """Delete the locally stored token."""
    manager = _build_manager(ctx.obj["user"])
    manager.revoke()
    click.echo("Stored token deleted.")


if __name__ == "__main__":
    cli()
