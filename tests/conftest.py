from datetime import date, time
from decimal import Decimal

import pytest
from flask_login import FlaskLoginClient

from ellarises.app import create_app
from ellarises.database import (
    SESSION_FACTORY_KEY, EventOccurrence, EventTemplate, Participant, User,
)
from ellarises.services.auth_models import COMMON, MANAGER, SESSION_IDENTITY_KEY, SessionIdentity
from ellarises.services.auth_service import auth_service

TEST_CONFIG = {
    'TESTING': True,
    'DATABASE_URL': 'sqlite://',
    'WTF_CSRF_ENABLED': False,
    'RATELIMIT_ENABLED': False,
    'BCRYPT_ROUNDS': 4,
    'PAGE_SIZE': 10,
    'PUBLIC_LISTINGS': frozenset(),
    'LOGIN_MAX_ATTEMPTS': 5,
    'LOGIN_LOCKOUT_SECONDS': 900,
}


class IdentityLoginClient(FlaskLoginClient):
    """FlaskLoginClient that also stores the identity snapshot the user loader reads."""

    def __init__(self, *args, **kwargs):
        user = kwargs.get('user')
        super().__init__(*args, **kwargs)
        if user is not None:
            with self.session_transaction() as sess:
                sess[SESSION_IDENTITY_KEY] = user.to_snapshot()


@pytest.fixture
def app_config(request):
    config = dict(TEST_CONFIG)
    config.update(getattr(request, 'param', {}))
    return config


@pytest.fixture
def app(app_config):
    app = create_app(app_config)
    app.test_client_class = IdentityLoginClient
    yield app


@pytest.fixture
def db(app):
    session = app.extensions[SESSION_FACTORY_KEY]()
    yield session
    session.close()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(db, email, password='secret123', role=COMMON, first_name='Test', last_name='User', hashed=True):
    user = User(
        userfirstname=first_name,
        userlastname=last_name,
        useremail=email,
        password=auth_service.get_password_hash(password) if hashed else password,
        userrole=role,
    )
    db.add(user)
    db.commit()
    return user


def make_participant(db, first_name, last_name, email=None, **extra):
    participant = Participant(
        participantfirstname=first_name,
        participantlastname=last_name,
        participantemail=email or f'{first_name}.{last_name}@example.org'.lower(),
        totaldonations=extra.pop('totaldonations', Decimal('0.00')),
        **extra,
    )
    db.add(participant)
    db.commit()
    return participant


def make_template(db, event_type='Workshop'):
    template = EventTemplate(eventtype=event_type, eventdescription=f'{event_type} template')
    db.add(template)
    db.commit()
    return template


def make_event(db, template, name='Robotics Night', event_date=date(2024, 5, 1), **extra):
    event = EventOccurrence(
        eventtemplateid=template.eventtemplateid,
        eventname=name,
        eventdate=event_date,
        eventtimestart=extra.pop('eventtimestart', time(18, 0)),
        **extra,
    )
    db.add(event)
    db.commit()
    return event


@pytest.fixture
def manager(db):
    return make_user(db, 'manager@example.org', role=MANAGER, first_name='Maria')


@pytest.fixture
def staff(db):
    return make_user(db, 'staff@example.org', role=COMMON, first_name='Sam')


@pytest.fixture
def manager_client(app, manager):
    return app.test_client(user=SessionIdentity.from_user(manager))


@pytest.fixture
def staff_client(app, staff):
    return app.test_client(user=SessionIdentity.from_user(staff))


def flashed_messages(client):
    """Pop the pending flash messages, like the next rendered page would."""
    with client.session_transaction() as sess:
        return [message for _, message in sess.pop('_flashes', [])]
