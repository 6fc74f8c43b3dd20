"""
Tests for the create-admin and fund-budget CLI commands.
"""

from zeta_rewards import db
from zeta_rewards.models import User, AdminBudget, Role


def test_create_admin(client, app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'create-admin', '--name', 'Root', '--email', 'Root@Zeta.test', '--password', 'secret123',
    ])

    assert result.exit_code == 0, result.output
    admin = User.query.filter_by(email='root@zeta.test').one()
    assert admin.role == Role.ADMIN.value
    assert admin.approved is True
    assert admin.check_password('secret123')


def test_create_admin_duplicate(client, app, make_user):
    make_user('Root', role=Role.ADMIN.value, email='root@zeta.test')
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'create-admin', '--name', 'Root', '--email', 'root@zeta.test', '--password', 'secret123',
    ])
    assert result.exit_code == 1
    assert 'already exists' in result.output


def test_fund_budget(client, app, make_user):
    admin = make_user('Root', role=Role.ADMIN.value, email='root@zeta.test')
    runner = app.test_cli_runner()

    result = runner.invoke(args=['fund-budget', 'root@zeta.test', '250', '--point-value', '0.1'])
    assert result.exit_code == 0, result.output
    assert 'remaining 250' in result.output

    runner.invoke(args=['fund-budget', 'root@zeta.test', '50'])
    budget = db.session.get(AdminBudget, admin.id)
    assert (budget.total_points, budget.remaining_points) == (300, 300)


def test_fund_budget_unknown_admin(client, app, make_user):
    make_user('Worker', email='worker@zeta.test')
    runner = app.test_cli_runner()
    result = runner.invoke(args=['fund-budget', 'worker@zeta.test', '10'])
    assert result.exit_code == 1
    assert "No admin with email" in result.output


def test_fund_budget_rejects_zero(client, app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['fund-budget', 'root@zeta.test', '0'])
    assert result.exit_code == 2
