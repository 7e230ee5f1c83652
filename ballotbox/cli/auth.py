#!/usr/bin/env python3
"""
BallotBox Auth CLI

Issues and checks the caller tokens the node accepts in the
x-caller-id / x-caller-token headers. The secret is read from
BALLOTBOX_AUTH_SECRET unless --secret is given.

Usage:
    ballotbox-auth issue <caller_id>
    ballotbox-auth verify <caller_id> <token>
"""

import click

from ballotbox.config import load_config
from ballotbox.constants import NODE_VERSION
from ballotbox.exceptions import AuthenticationError
from ballotbox.node.identity import (
    CALLER_ID_HEADER,
    CALLER_TOKEN_HEADER,
    CallerAuthenticator,
)


def _authenticator(secret):
    if secret is None:
        secret = load_config().auth.secret
    authenticator = CallerAuthenticator(secret)
    if not authenticator.enabled:
        raise click.ClickException(
            "No secret configured. Set BALLOTBOX_AUTH_SECRET or pass --secret."
        )
    return authenticator


@click.group()
@click.version_option(version=NODE_VERSION, prog_name="ballotbox-auth")
def cli():
    """
    BallotBox caller token management.
    """
    pass


@cli.command("issue")
@click.argument("caller_id")
@click.option("--secret", default=None, help="Node auth secret (defaults to env)")
@click.option("--headers", is_flag=True, help="Print as HTTP headers")
def issue(caller_id, secret, headers):
    """
    Issue a token for CALLER_ID.

    Examples:

        ballotbox-auth issue alice

        ballotbox-auth issue alice --headers
    """
    try:
        token = _authenticator(secret).issue(caller_id)
    except AuthenticationError as e:
        raise click.ClickException(str(e))

    if headers:
        click.echo(f"{CALLER_ID_HEADER}: {caller_id}")
        click.echo(f"{CALLER_TOKEN_HEADER}: {token}")
    else:
        click.echo(token)


@cli.command("verify")
@click.argument("caller_id")
@click.argument("token")
@click.option("--secret", default=None, help="Node auth secret (defaults to env)")
def verify(caller_id, token, secret):
    """Check that TOKEN authenticates CALLER_ID."""
    identity = _authenticator(secret).verify(caller_id, token)
    if identity is None:
        click.echo(click.style("✗ Token rejected", fg="red"))
        raise SystemExit(1)
    click.echo(click.style(f"✓ Token valid for {identity}", fg="green"))


if __name__ == "__main__":
    cli()
