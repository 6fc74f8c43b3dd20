"""
Tests for issuing rewards: ledger entry, giver debit, derived post and the
follow-up notification/audit/push steps.
"""

import pytest
from sqlalchemy import update

from zeta_rewards import db
from zeta_rewards.errors import (
    Forbidden, NotFound, InsufficientPoints, InvalidReason, ValidationError, InternalError,
)
from zeta_rewards.models import (
    AdminBudget, ManagerPoints, RewardPoints, RewardReason, Post, Notification, AuditLog, Role,
)
from zeta_rewards.utils.balance import load_balance
from zeta_rewards.utils.ledger import LedgerService


def _pool(manager):
    return ManagerPoints.query.filter_by(manager_id=manager.id).one()


def test_manager_issues_to_own_employee(client, org):
    manager, alice = org['manager'], org['alice']

    entry, post = LedgerService(db.session).issue_reward(
        manager.id, Role.MANAGER.value, alice.id, 20, reason='Shipped the release',
    )

    assert _pool(manager).remaining_points == 40
    rows = RewardPoints.query.filter_by(receiver_id=alice.id).all()
    assert len(rows) == 1
    assert rows[0].points == 20
    assert rows[0].id == entry.id
    assert post.giver_id == manager.id
    assert post.receiver_id == alice.id
    assert post.points == 20
    assert post.reason == 'Shipped the release'
    assert load_balance(db.session, alice.id).available == 20


def test_manager_cannot_reward_other_team(client, org, make_user):
    outsider = make_user('Outsider')
    with pytest.raises(Forbidden):
        LedgerService(db.session).issue_reward(
            org['manager'].id, Role.MANAGER.value, outsider.id, 5, reason='Nope',
        )
    assert RewardPoints.query.count() == 0
    assert _pool(org['manager']).remaining_points == 60


def test_issue_boundary(client, org):
    manager, alice = org['manager'], org['alice']
    ledger = LedgerService(db.session)

    with pytest.raises(InsufficientPoints):
        ledger.issue_reward(manager.id, Role.MANAGER.value, alice.id, 61, reason='Too much')
    assert RewardPoints.query.count() == 0
    assert Post.query.count() == 0

    ledger.issue_reward(manager.id, Role.MANAGER.value, alice.id, 60, reason='Everything')
    assert _pool(manager).remaining_points == 0


def test_manager_without_pool_has_zero(client, make_user):
    manager = make_user('New Boss', role=Role.MANAGER.value)
    employee = make_user('Hire', manager=manager)
    with pytest.raises(InsufficientPoints):
        LedgerService(db.session).issue_reward(manager.id, Role.MANAGER.value, employee.id, 1, reason='Hi')


def test_admin_issues_from_budget_to_anyone(client, org, make_user):
    admin = org['admin']
    outsider = make_user('Outsider')

    LedgerService(db.session).issue_reward(admin.id, Role.ADMIN.value, outsider.id, 15, reason='Helped out')

    assert db.session.get(AdminBudget, admin.id).remaining_points == 25
    assert load_balance(db.session, outsider.id).earned == 15


def test_reason_id_resolves_text_and_image(client, org):
    reason = RewardReason(reason='Team Player', description='', img='https://img.test/team.png')
    db.session.add(reason)
    db.session.commit()

    entry, post = LedgerService(db.session).issue_reward(
        org['manager'].id, Role.MANAGER.value, org['alice'].id, 5, reason_id=reason.id, caption='Thanks!',
    )
    assert entry.reason == 'Team Player'
    assert entry.reason_id == reason.id
    assert post.image_url == 'https://img.test/team.png'
    assert post.caption == 'Thanks!'


def test_unknown_reason_id(client, org):
    with pytest.raises(InvalidReason):
        LedgerService(db.session).issue_reward(
            org['manager'].id, Role.MANAGER.value, org['alice'].id, 5, reason_id=999,
        )
    assert _pool(org['manager']).remaining_points == 60


def test_reason_required(client, org):
    with pytest.raises(ValidationError):
        LedgerService(db.session).issue_reward(
            org['manager'].id, Role.MANAGER.value, org['alice'].id, 5, reason='   ',
        )


def test_unknown_receiver(client, org):
    with pytest.raises(NotFound):
        LedgerService(db.session).issue_reward(org['admin'].id, Role.ADMIN.value, 4242, 5, reason='Ghost')


def test_employee_cannot_issue(client, org):
    with pytest.raises(Forbidden):
        LedgerService(db.session).issue_reward(
            org['alice'].id, Role.EMPLOYEE.value, org['bob'].id, 5, reason='Peer bonus',
        )


# -------------------- HTTP --------------------

class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, token, notification, data=None):
        self.sent.append((token, notification, data))
        return True


def test_issue_route_side_effects(client, app, org, auth_header, monkeypatch):
    manager, alice, bob = org['manager'], org['alice'], org['bob']
    alice.push_token = 'token-alice'
    bob.push_token = 'token-bob'
    db.session.commit()

    notifier = RecordingNotifier()
    monkeypatch.setitem(app.extensions, 'zeta_push_notifier', notifier)

    resp = client.post('/api/rewards/issue', json={
        'receiver_id': alice.id, 'points': 20, 'reason': 'Great demo',
    }, headers=auth_header(manager))

    assert resp.status_code == 201
    assert resp.json['data']['points'] == 20
    assert db.session.get(Post, resp.json['post_id']).receiver_id == alice.id

    notification = Notification.query.filter_by(recipient_id=alice.id).one()
    assert notification.type == 'reward'
    assert notification.sender_id == manager.id
    assert 'Max Manager rewarded you 20 points' in notification.message

    assert AuditLog.query.filter_by(user_id=manager.id, action='Reward Issued').count() == 1

    assert sorted(token for token, _, _ in notifier.sent) == ['token-alice', 'token-bob']
    assert notifier.sent[0][1]['title'] == 'New Recognition'


def test_push_failure_does_not_undo_reward(client, app, org, auth_header, monkeypatch):
    manager, alice = org['manager'], org['alice']
    alice.push_token = 'token-alice'
    db.session.commit()

    class BrokenNotifier:
        def send(self, token, notification, data=None):
            raise RuntimeError('provider down')

    monkeypatch.setitem(app.extensions, 'zeta_push_notifier', BrokenNotifier())

    resp = client.post('/api/rewards/issue', json={
        'receiver_id': alice.id, 'points': 5, 'reason': 'Still counts',
    }, headers=auth_header(manager))

    assert resp.status_code == 201
    assert RewardPoints.query.filter_by(receiver_id=alice.id).count() == 1


def test_issue_route_rejects_other_team(client, org, make_user, auth_header):
    outsider = make_user('Outsider')
    resp = client.post('/api/rewards/issue', json={
        'receiver_id': outsider.id, 'points': 5, 'reason': 'Nope',
    }, headers=auth_header(org['manager']))
    assert resp.status_code == 403
    assert resp.json['message'] == 'You can only reward your own employees.'


def test_issue_route_insufficient(client, org, auth_header):
    resp = client.post('/api/rewards/issue', json={
        'receiver_id': org['alice'].id, 'points': 61, 'reason': 'Too much',
    }, headers=auth_header(org['manager']))
    assert resp.status_code == 400
    assert RewardPoints.query.count() == 0
    assert Notification.query.count() == 0


@pytest.mark.parametrize('points', [7.9, True, '7.5', 'seven'])
def test_issue_route_rejects_non_integer_points(client, org, auth_header, points):
    resp = client.post('/api/rewards/issue', json={
        'receiver_id': org['alice'].id, 'points': points, 'reason': 'Almost',
    }, headers=auth_header(org['manager']))
    assert resp.status_code == 400
    assert resp.json['message'] == 'points: Not a valid integer value.'
    assert RewardPoints.query.count() == 0
    assert Post.query.count() == 0
    assert _pool(org['manager']).remaining_points == 60


def test_issue_route_accepts_digit_string_points(client, org, auth_header):
    resp = client.post('/api/rewards/issue', json={
        'receiver_id': str(org['alice'].id), 'points': '7', 'reason': 'Form post',
    }, headers=auth_header(org['manager']))
    assert resp.status_code == 201
    assert RewardPoints.query.one().points == 7


def test_issue_route_rejects_non_integer_receiver(client, org, auth_header):
    resp = client.post('/api/rewards/issue', json={
        'receiver_id': float(org['alice'].id), 'points': 5, 'reason': 'Almost',
    }, headers=auth_header(org['manager']))
    assert resp.status_code == 400
    assert resp.json['message'] == 'receiver_id: Not a valid integer value.'


@pytest.mark.parametrize('reason', [12345, {'text': 'Nested'}])
def test_issue_route_rejects_non_string_reason(client, org, auth_header, reason):
    resp = client.post('/api/rewards/issue', json={
        'receiver_id': org['alice'].id, 'points': 5, 'reason': reason,
    }, headers=auth_header(org['manager']))
    assert resp.status_code == 400
    assert resp.json['message'] == 'reason: Not a valid string value.'
    assert RewardPoints.query.count() == 0


# -------------------- FAILURE PATHS --------------------

def test_failed_post_insert_rolls_back_entry_and_debit(client, org, failing_insert):
    manager, alice = org['manager'], org['alice']

    with failing_insert(Post):
        with pytest.raises(InternalError):
            LedgerService(db.session).issue_reward(
                manager.id, Role.MANAGER.value, alice.id, 20, reason='Lost on the way',
            )

    assert RewardPoints.query.count() == 0
    assert Post.query.count() == 0
    assert _pool(manager).remaining_points == 60
    assert load_balance(db.session, alice.id).available == 0


def test_failed_post_insert_is_500_over_http(client, org, auth_header, failing_insert):
    with failing_insert(Post):
        resp = client.post('/api/rewards/issue', json={
            'receiver_id': org['alice'].id, 'points': 20, 'reason': 'Lost on the way',
        }, headers=auth_header(org['manager']))

    assert resp.status_code == 500
    assert resp.json == {'status': 'error', 'message': 'An internal error occurred. Please try again.'}
    assert RewardPoints.query.count() == 0
    assert Notification.query.count() == 0
    assert _pool(org['manager']).remaining_points == 60


def _drain_before_debit(monkeypatch, method_name, model, key_column, left):
    """Lower remaining_points right before the conditional debit runs, as a concurrent spender would."""
    original = getattr(LedgerService, method_name)

    def drained_first(self, owner_id, points):
        self.session.execute(
            update(model)
            .where(key_column == owner_id)
            .values(remaining_points=left)
            .execution_options(synchronize_session=False)
        )
        return original(self, owner_id, points)

    monkeypatch.setattr(LedgerService, method_name, drained_first)


def test_manager_loses_debit_race(client, org, monkeypatch):
    manager, alice = org['manager'], org['alice']
    _drain_before_debit(monkeypatch, '_debit_manager_pool', ManagerPoints, ManagerPoints.manager_id, 5)

    with pytest.raises(InsufficientPoints):
        LedgerService(db.session).issue_reward(manager.id, Role.MANAGER.value, alice.id, 20, reason='Too late')

    assert RewardPoints.query.count() == 0
    assert Post.query.count() == 0
    # the drain ran inside the rolled back transaction
    assert _pool(manager).remaining_points == 60


def test_admin_loses_debit_race(client, org, monkeypatch):
    admin, bob = org['admin'], org['bob']
    _drain_before_debit(monkeypatch, '_debit_admin_budget', AdminBudget, AdminBudget.admin_id, 0)

    with pytest.raises(InsufficientPoints):
        LedgerService(db.session).issue_reward(admin.id, Role.ADMIN.value, bob.id, 10, reason='Too late')

    assert RewardPoints.query.count() == 0
    assert db.session.get(AdminBudget, admin.id).remaining_points == 40
