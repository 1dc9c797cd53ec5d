import pytest

from config import TestingConfig
from tanda import create_app
from tanda.extensions import db as _db
from tanda.models import User


VALID_STEP_1 = {
    'name': 'Grupo Familiar',
    'description': 'Ahorro familiar para las fiestas de fin de ano',
    'type': 'familiar',
    'location': 'Tegucigalpa',
}

VALID_STEP_2 = {
    'contribution': '1000',
    'max_participants': '10',
    'payment_frequency': 'monthly',
}

VALID_STEP_3 = {
    'penalty_amount': '50',
    'grace_period': '3',
}


class FakeHandle:
    def __init__(self, when, callback, args):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock: callbacks run only when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle(self.now + delay, callback, args)
        self.timers.append(handle)
        return handle

    @property
    def pending(self):
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending if timer.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback(*timer.args)
        self.now = target


def fill(session, values):
    for field, value in values.items():
        session.update_field(field, value)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def coordinator(app):
    user = User(name='Maria Lopez', email='maria@example.com')
    user.set_password('secreto123')
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture
def auth_client(client, coordinator):
    response = client.post('/login', data={
        'email': 'maria@example.com',
        'password': 'secreto123',
    })
    assert response.status_code == 302
    return client
