# cli.py: flask commands for operating the commission service
#
#   flask make-admin <auth0_id>
#   flask issue-token <auth0_id>
#   flask check-sponsor-chains
#   flask commission-config
from datetime import timedelta

import click
from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import User, ADMIN_ROLE, MEMBER_ROLE
from auth import create_access_token
from commissions.chains import find_cyclic_users
from commissions.config import CommissionConfigHelper


def register_cli(app):

    @app.cli.command("make-admin")
    @click.argument("auth0_id")
    @click.option("--username", default=None, help="Username when the user has to be created")
    def make_admin(auth0_id, username):
        """Grant the admin role to the user with AUTH0_ID, creating it if needed."""
        user = User.query.filter_by(auth0_id=auth0_id).first()

        if user:
            click.echo(f"Found user id={user.id}, auth0_id={auth0_id}. Promoting to admin...")
        else:
            click.echo(f"No user with auth0_id {auth0_id} found; creating a new user.")
            try:
                user = User(
                    auth0_id=auth0_id,
                    username=username or auth0_id,
                    roles=[MEMBER_ROLE],
                )
                db.session.add(user)
                db.session.commit()
            except IntegrityError as e:
                db.session.rollback()
                raise click.ClickException(f"Could not create user {auth0_id}: {e.orig}")

        if not user.has_role(ADMIN_ROLE):
            # reassign so the JSON column is flagged dirty
            user.roles = list(user.roles or []) + [ADMIN_ROLE]
        db.session.commit()
        click.echo(f"User (id={user.id}, auth0_id={auth0_id}) is now admin.")

    @app.cli.command("issue-token")
    @click.argument("auth0_id")
    @click.option("--hours", default=1, show_default=True, type=int)
    def issue_token(auth0_id, hours):
        """Print an HS256 bearer token for AUTH0_ID (local development only)."""
        if current_app.config.get("AUTH0_DOMAIN"):
            raise click.ClickException("AUTH0_DOMAIN is set; tokens must come from Auth0")
        click.echo(create_access_token(auth0_id, expires_in=timedelta(hours=hours)))

    @app.cli.command("check-sponsor-chains")
    def check_sponsor_chains():
        """Report users whose sponsor chain loops back on itself."""
        cyclic = find_cyclic_users(db.session)
        if not cyclic:
            click.echo("No cyclic sponsor chains found")
            return
        for user_id in cyclic:
            click.echo(f"Cyclic sponsor chain: user {user_id}")
        raise SystemExit(1)

    @app.cli.command("commission-config")
    def commission_config():
        """Print the default commission distribution."""
        summary = CommissionConfigHelper.get_distribution_summary()
        click.echo(f"Direct:   {summary['direct']}%")
        for level, info in summary['distribution'].items():
            click.echo(f"Level {level:2d}: {info['percentage_display']}")
        click.echo(f"Total:    {summary['total_percentage']}% across {summary['max_level']} levels")

    return app
