import os
from contextlib import contextmanager
import sys
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Override env vars for testing
os.environ["SECRET_KEY"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["FLASK_ENV"] = "testing"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-with-enough-length"
os.environ["RATELIMIT_ENABLED"] = "false"
os.environ.setdefault("RATELIMIT_STORAGE_URI", "memory://")


sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
from zeta_rewards import app as flask_app, db
from zeta_rewards.auth import issue_token
from zeta_rewards.models import User, Role, Reward
from zeta_rewards.utils.ledger import LedgerService


@pytest.fixture
def app():
    """Provide the Flask app instance for tests."""
    flask_app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        ENV="testing",
    )
    yield flask_app


@pytest.fixture
def client(app):
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    client = flask_app.test_client()
    yield client
    db.session.remove()
    db.drop_all()
    ctx.pop()


# SQLite pragma event listener for foreign key constraints
# Registered at module level and persists across all tests
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Register event listener once at module load time
# Only applies to SQLite connections, so won't affect other databases
event.listen(Engine, "connect", _enable_sqlite_foreign_keys)


@pytest.fixture
def make_user(client):
    """Factory creating approved users; pass manager= to set the reporting line."""
    counter = {"n": 0}

    def _make_user(name, role=Role.EMPLOYEE.value, manager=None, approved=True, password="secret123", **fields):
        counter["n"] += 1
        user = User(
            name=name,
            email=fields.pop("email", f"{name.lower().replace(' ', '.')}{counter['n']}@zeta.test"),
            role=role,
            approved=approved,
            manager_id=manager.id if manager is not None else None,
            **fields,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def auth_header():
    """Return a function building an Authorization header for a user."""
    def _auth_header(user):
        return {"Authorization": f"Bearer {issue_token(user)}"}
    return _auth_header


@pytest.fixture
def org(make_user):
    """
    Admin with a 100 point budget, a manager holding 60 of it, and two
    employees reporting to the manager.
    """
    admin = make_user("Ada Admin", role=Role.ADMIN.value)
    manager = make_user("Max Manager", role=Role.MANAGER.value)
    alice = make_user("Alice", manager=manager)
    bob = make_user("Bob", manager=manager)

    ledger = LedgerService(db.session)
    ledger.fund_budget(admin.id, 100)
    ledger.allocate(admin.id, manager.id, 60)

    return {"admin": admin, "manager": manager, "alice": alice, "bob": bob}


@pytest.fixture
def make_reward(client):
    """Factory creating catalog rewards."""
    def _make_reward(title, points_required, category_id=None):
        reward = Reward(title=title, points_required=points_required, category_id=category_id)
        db.session.add(reward)
        db.session.commit()
        return reward
    return _make_reward


@pytest.fixture
def failing_insert():
    """
    Make every INSERT of a model raise OperationalError for the duration of
    a ``with`` block, as a dropped database connection would.
    """
    @contextmanager
    def _failing_insert(model):
        def _fail(mapper, connection, target):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        event.listen(model, "before_insert", _fail)
        try:
            yield
        finally:
            event.remove(model, "before_insert", _fail)

    return _failing_insert
