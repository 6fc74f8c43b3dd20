"""
Flask CLI commands for account bootstrap and budget operations.
"""

import click
from flask.cli import with_appcontext

from zeta_rewards.errors import RewardsError
from zeta_rewards.extensions import db
from zeta_rewards.models import User, Role
from zeta_rewards.utils.ledger import LedgerService


@click.command('create-admin')
@click.option('--name', prompt='Admin name', help='Display name of the admin')
@click.option('--email', prompt='Admin email', help='Login email of the admin')
@click.password_option('--password', help='Login password of the admin')
@with_appcontext
def create_admin_command(name, email, password):
    """
    Create an approved admin account.

    The first admin cannot sign up through the API (signups are employees
    awaiting approval), so it is created here.
    """
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo(f"❌ A user with email '{email}' already exists.")
        raise SystemExit(1)

    admin = User(name=name.strip(), email=email, role=Role.ADMIN.value, approved=True)
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()

    click.echo(f"✅ Admin '{email}' created with id {admin.id}.")


@click.command('fund-budget')
@click.argument('email')
@click.argument('points', type=click.IntRange(min=1))
@click.option('--point-value', type=float, default=None, help='Monetary value of one point')
@with_appcontext
def fund_budget_command(email, points, point_value):
    """Add POINTS to the budget of the admin with EMAIL."""
    admin = User.query.filter_by(email=email.strip().lower(), role=Role.ADMIN.value).first()
    if admin is None:
        click.echo(f"❌ No admin with email '{email}'.")
        raise SystemExit(1)

    try:
        budget = LedgerService(db.session).fund_budget(admin.id, points, point_value=point_value)
    except RewardsError as e:
        click.echo(f"❌ {e.message}")
        raise SystemExit(1)

    click.echo(
        f"✓ Budget for {email}: total {budget.total_points}, remaining {budget.remaining_points}"
    )


def init_app(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(create_admin_command)
    app.cli.add_command(fund_budget_command)
