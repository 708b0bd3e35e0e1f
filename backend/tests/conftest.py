"""
Pytest fixtures for employee space backend tests.

Provides an in-memory database, per-test table cleanup, user fixtures and
an authenticated test client helper.
"""

import pytest
from sqlalchemy import event

from employee_space import create_app
from employee_space.extensions import db
from employee_space.models import Project, Subtask, Task, User
from employee_space.services.auth_service import hash_password
from employee_space.services.cache_service import get_cache
from employee_space.time_utils import utcnow


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table and the read cache before each test."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.remove()
    get_cache().clear()

    yield db.session

    db.session.rollback()


@pytest.fixture
def concurrent_insert(db_session):
    """
    Simulate another request winning an insert race.

    ``concurrent_insert(Model, statement)`` runs ``statement`` on the session's
    connection just before the next flush that carries a new ``Model``, so that
    flush collides with the row it wrote. One-shot; returns the list of
    statements that actually fired.
    """
    session = db.session()
    armed = {}
    fired = []

    def before_flush(sess, flush_context, instances):
        model = armed.get("model")
        if model is not None and any(isinstance(obj, model) for obj in sess.new):
            statement = armed.pop("statement")
            armed.clear()
            sess.connection().execute(statement)
            fired.append(statement)

    event.listen(session, "before_flush", before_flush)

    def arm(model, statement):
        armed.update(model=model, statement=statement)
        return fired

    yield arm

    event.remove(session, "before_flush", before_flush)


def make_user(email: str, password_hash: str, *, is_admin: bool = False, first_name: str = "Test") -> User:
    user = User(
        email=email,
        first_name=first_name,
        last_name="User",
        password_hash=password_hash,
        password_changed=True,
        is_admin=is_admin,
        is_active=True,
        created_at=utcnow(),
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def employee(db_session, password_hash):
    return make_user("jo@example.com", password_hash, first_name="Jo")


@pytest.fixture(scope='function')
def other_employee(db_session, password_hash):
    return make_user("sam@example.com", password_hash, first_name="Sam")


@pytest.fixture(scope='function')
def admin(db_session, password_hash):
    return make_user("admin@example.com", password_hash, is_admin=True, first_name="Ada")


@pytest.fixture(scope='function')
def project_tree(db_session, employee):
    """One project with one task and one subtask assigned to ``employee``."""
    now = utcnow()
    project = Project(title="Website", description="Marketing site", created_at=now, updated_at=now)
    task = Task(title="Build", created_at=now, updated_at=now)
    subtask = Subtask(title="Landing page", created_at=now, updated_at=now)
    subtask.assigned_users = [employee]
    task.subtasks = [subtask]
    project.tasks = [task]
    db.session.add(project)
    db.session.commit()
    return project, task, subtask


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def employee_headers(client, employee):
    return auth_headers(get_auth_token(client, employee.email))


@pytest.fixture(scope='function')
def other_headers(client, other_employee):
    return auth_headers(get_auth_token(client, other_employee.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))
