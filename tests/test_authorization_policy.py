"""
Tests for the role policy table and the role_required decorator.
"""

import pytest

from zeta_rewards import db
from zeta_rewards.auth import is_allowed, POLICY, ADMIN, MANAGER, EMPLOYEE
from zeta_rewards.models import Role


@pytest.mark.parametrize('role,resource,action,expected', [
    (ADMIN, 'budget', 'fund', True),
    (MANAGER, 'budget', 'fund', False),
    (ADMIN, 'allocation', 'create', True),
    (MANAGER, 'allocation', 'create', False),
    (MANAGER, 'reward', 'issue', True),
    (ADMIN, 'reward', 'issue', True),
    (EMPLOYEE, 'reward', 'issue', False),
    (EMPLOYEE, 'redemption', 'request', True),
    (ADMIN, 'redemption', 'request', False),
    (ADMIN, 'redemption', 'resolve', True),
    (MANAGER, 'redemption', 'resolve', False),
    (MANAGER, 'reasons', 'read', True),
    (MANAGER, 'reasons', 'manage', False),
    (EMPLOYEE, 'catalog', 'read', True),
    (EMPLOYEE, 'posts', 'delete', False),
])
def test_is_allowed(role, resource, action, expected):
    assert is_allowed(role, resource, action) is expected


def test_unknown_resource_is_denied():
    assert is_allowed(ADMIN, 'nuclear', 'launch') is False


def test_unknown_role_is_denied():
    assert all(not is_allowed('intern', resource, action) for resource, action in POLICY)


def test_employee_cannot_fund_budget(client, make_user, auth_header):
    employee = make_user('Worker')
    resp = client.post('/api/admin/budget', json={'points': 100}, headers=auth_header(employee))
    assert resp.status_code == 403
    assert resp.json['message'] == 'Forbidden: Role not allowed'


def test_manager_cannot_list_users(client, make_user, auth_header):
    manager = make_user('Boss', role=Role.MANAGER.value)
    resp = client.get('/api/admin/users', headers=auth_header(manager))
    assert resp.status_code == 403


def test_admin_cannot_request_redemption(client, make_user, auth_header, make_reward):
    admin = make_user('Root', role=Role.ADMIN.value)
    reward = make_reward('Mug', 5)
    resp = client.post('/api/employee/redemptions', json={'reward_id': reward.id}, headers=auth_header(admin))
    assert resp.status_code == 403


def test_every_role_reads_catalog(client, make_user, auth_header, make_reward):
    make_reward('Mug', 5)
    for role in (ADMIN, MANAGER, EMPLOYEE):
        user = make_user(f'User {role}', role=role)
        resp = client.get('/api/admin/rewards/catalog', headers=auth_header(user))
        assert resp.status_code == 200
        assert [r['title'] for r in resp.json['data']] == ['Mug']


def test_demoted_admin_token_loses_admin_access(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    headers = auth_header(admin)
    assert client.get('/api/admin/users', headers=headers).status_code == 200

    admin.role = Role.EMPLOYEE.value
    db.session.commit()

    resp = client.get('/api/admin/users', headers=headers)
    assert resp.status_code == 403
    assert resp.json['message'] == 'Forbidden: Role not allowed'


def test_role_change_over_api_applies_to_existing_token(client, make_user, auth_header):
    root = make_user('Root', role=Role.ADMIN.value)
    other_admin = make_user('Second', role=Role.ADMIN.value)
    headers = auth_header(other_admin)

    resp = client.put(f'/api/admin/users/{other_admin.id}/update-role', json={'role': 'employee'},
                      headers=auth_header(root))
    assert resp.status_code == 200

    assert client.get('/api/admin/users', headers=headers).status_code == 403
    assert client.get('/api/employee/points', headers=headers).status_code == 200


def test_unapproved_account_token_is_rejected(client, make_user, auth_header):
    worker = make_user('Worker')
    headers = auth_header(worker)
    worker.approved = False
    db.session.commit()

    resp = client.get('/api/employee/me', headers=headers)
    assert resp.status_code == 401
    assert resp.json['message'] == 'Account is not active'


def test_deleted_account_token_is_rejected(client, make_user, auth_header):
    worker = make_user('Worker')
    headers = auth_header(worker)
    db.session.delete(worker)
    db.session.commit()

    resp = client.get('/api/employee/me', headers=headers)
    assert resp.status_code == 401
