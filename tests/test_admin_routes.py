"""
Tests for admin user management, departments and audit log listing.
"""

from zeta_rewards import db
from zeta_rewards.models import User, Department, RewardPoints, AuditLog, Role
from zeta_rewards.utils.ledger import LedgerService


def test_list_users_filter_by_role(client, org, auth_header):
    headers = auth_header(org['admin'])

    resp = client.get('/api/admin/users', headers=headers)
    assert resp.status_code == 200
    assert len(resp.json['data']) == 4

    resp = client.get('/api/admin/users?role=employee', headers=headers)
    assert sorted(u['name'] for u in resp.json['data']) == ['Alice', 'Bob']

    resp = client.get('/api/admin/users?role=wizard', headers=headers)
    assert resp.status_code == 400


def test_approve_toggle(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    pending = make_user('Pending', approved=False)

    resp = client.put(f'/api/admin/users/{pending.id}/approve', json={'approved': True}, headers=auth_header(admin))
    assert resp.status_code == 200
    assert resp.json['message'] == 'User approved successfully.'
    assert db.session.get(User, pending.id).approved is True

    resp = client.put(f'/api/admin/users/{pending.id}/approve', json={'approved': False}, headers=auth_header(admin))
    assert resp.json['message'] == 'User unapproved successfully.'
    assert db.session.get(User, pending.id).approved is False


def test_approve_unknown_user(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    resp = client.put('/api/admin/users/999/approve', json={'approved': True}, headers=auth_header(admin))
    assert resp.status_code == 404


def test_update_role_assigns_manager_and_department(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    manager = make_user('Boss', role=Role.MANAGER.value)
    worker = make_user('Worker')
    department = Department(name='Engineering')
    db.session.add(department)
    db.session.commit()

    resp = client.put(f'/api/admin/users/{worker.id}/update-role', json={
        'role': 'employee',
        'manager_id': manager.id,
        'department_id': department.id,
        'date_of_joining': '2024-03-01',
        'employee_id': 'EMP-042',
    }, headers=auth_header(admin))

    assert resp.status_code == 200
    user = resp.json['user']
    assert user['manager_id'] == manager.id
    assert user['department_name'] == 'Engineering'
    assert user['date_of_joining'] == '2024-03-01'
    assert user['employee_id'] == 'EMP-042'

    log = AuditLog.query.filter_by(action='User Role Updated').one()
    assert f'under manager {manager.id}' in log.details


def test_update_role_rejects_non_manager_and_bad_role(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    worker = make_user('Worker')
    peer = make_user('Peer')

    resp = client.put(f'/api/admin/users/{worker.id}/update-role', json={'manager_id': peer.id},
                      headers=auth_header(admin))
    assert resp.status_code == 404

    resp = client.put(f'/api/admin/users/{worker.id}/update-role', json={'role': 'overlord'},
                      headers=auth_header(admin))
    assert resp.status_code == 400


def test_promote_to_manager(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    worker = make_user('Worker')
    resp = client.put(f'/api/admin/users/{worker.id}/update-role', json={'role': 'manager'},
                      headers=auth_header(admin))
    assert resp.status_code == 200
    assert db.session.get(User, worker.id).role == 'manager'


def test_delete_user_removes_their_ledger_rows(client, org, auth_header):
    alice = org['alice']
    LedgerService(db.session).issue_reward(
        org['manager'].id, Role.MANAGER.value, alice.id, 10, reason='Before leaving',
    )
    alice_id = alice.id

    resp = client.delete(f'/api/admin/users/{alice_id}', headers=auth_header(org['admin']))

    assert resp.status_code == 200
    assert db.session.get(User, alice_id) is None
    assert RewardPoints.query.filter_by(receiver_id=alice_id).count() == 0


def test_delete_manager_detaches_reports(client, org, auth_header):
    manager_id = org['manager'].id
    bob_id = org['bob'].id

    resp = client.delete(f'/api/admin/users/{manager_id}', headers=auth_header(org['admin']))

    assert resp.status_code == 200
    db.session.expire_all()
    assert db.session.get(User, bob_id).manager_id is None


def test_admin_cannot_delete_self(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    resp = client.delete(f'/api/admin/users/{admin.id}', headers=auth_header(admin))
    assert resp.status_code == 400
    assert db.session.get(User, admin.id) is not None


def test_department_crud(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    headers = auth_header(admin)

    resp = client.post('/api/admin/departments', json={'name': 'Sales'}, headers=headers)
    assert resp.status_code == 201
    dept_id = resp.json['data']['id']

    resp = client.post('/api/admin/departments', json={'name': 'Sales'}, headers=headers)
    assert resp.status_code == 400
    assert resp.json['message'] == 'Department already exists.'

    client.post('/api/admin/departments', json={'name': 'Marketing'}, headers=headers)
    resp = client.get('/api/admin/departments', headers=headers)
    assert [d['name'] for d in resp.json['data']] == ['Marketing', 'Sales']

    resp = client.put(f'/api/admin/departments/{dept_id}', json={'name': 'Marketing'}, headers=headers)
    assert resp.status_code == 400

    resp = client.put(f'/api/admin/departments/{dept_id}', json={'name': 'Field Sales'}, headers=headers)
    assert resp.status_code == 200
    assert resp.json['data']['name'] == 'Field Sales'


def test_delete_department_unassigns_users(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    department = Department(name='Ops')
    db.session.add(department)
    db.session.commit()
    worker = make_user('Worker', department_id=department.id)

    resp = client.delete(f'/api/admin/departments/{department.id}', headers=auth_header(admin))

    assert resp.status_code == 200
    assert Department.query.count() == 0
    assert db.session.get(User, worker.id).department_id is None


def test_audit_logs_newest_first(client, make_user, auth_header):
    admin = make_user('Root', role=Role.ADMIN.value)
    headers = auth_header(admin)
    client.post('/api/admin/departments', json={'name': 'Sales'}, headers=headers)
    client.post('/api/admin/departments', json={'name': 'Legal'}, headers=headers)

    resp = client.get('/api/admin/audit-logs', headers=headers)

    assert resp.status_code == 200
    details = [log['details'] for log in resp.json['data']]
    assert details == ['Legal', 'Sales']
    assert resp.json['data'][0]['email'] == admin.email
    assert resp.json['data'][0]['created_at'].endswith('Z')
