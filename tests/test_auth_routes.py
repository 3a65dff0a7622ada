import pytest

from ellarises.database import User
from ellarises.services.auth_models import COMMON, MANAGER

from conftest import flashed_messages, make_user


def _login(client, email, password):
    return client.post('/login', data={'email': email, 'password': password})


def _stored_password(db, email):
    db.expire_all()
    return db.query(User).filter(User.useremail == email).one().password


def test_login_page_renders(client):
    response = client.get('/login')
    assert response.status_code == 200
    assert b'Log in' in response.data


def test_successful_login_stores_identity_snapshot(client, db):
    make_user(db, 'maria@example.org', password='secret123', role=MANAGER, first_name='Maria')

    response = _login(client, 'maria@example.org', 'secret123')

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
    with client.session_transaction() as sess:
        assert sess['identity']['first_name'] == 'Maria'
        assert sess['identity']['role'] == MANAGER
        assert 'password' not in sess['identity']


def test_guard_captures_return_to_and_login_goes_back(client, db):
    make_user(db, 'sam@example.org', password='secret123')

    response = client.get('/participants/?search=ava')
    assert response.status_code == 302
    assert '/login' in response.headers['Location']
    assert 'Please log in to view this page.' in flashed_messages(client)

    response = _login(client, 'sam@example.org', 'secret123')
    assert response.headers['Location'].endswith('/participants/?search=ava')
    with client.session_transaction() as sess:
        assert 'return_to' not in sess


def test_return_to_query_parameter_must_be_in_app(client, db):
    make_user(db, 'sam@example.org', password='secret123')

    client.get('/login?returnTo=https://evil.example.com/steal')
    response = _login(client, 'sam@example.org', 'secret123')
    assert 'evil.example.com' not in response.headers['Location']

    client.get('/logout')
    client.get('/login?returnTo=/events')
    response = _login(client, 'sam@example.org', 'secret123')
    assert response.headers['Location'].endswith('/events')


def test_return_to_must_be_a_page_that_opens_with_get(client, db):
    make_user(db, 'sam@example.org', password='secret123')
    client.get('/login?returnTo=/participants/delete/3')
    with client.session_transaction() as sess:
        assert 'return_to' not in sess

    response = _login(client, 'sam@example.org', 'secret123')
    assert response.headers['Location'].endswith('/')
    assert 'delete' not in response.headers['Location']


def test_same_origin_referer_becomes_return_to(client, db):
    make_user(db, 'sam@example.org', password='secret123')
    client.get('/login', headers={'Referer': 'http://localhost/donations/'})
    response = _login(client, 'sam@example.org', 'secret123')
    assert response.headers['Location'].endswith('/donations/')


def test_wrong_password_and_unknown_email_share_one_message(client, db):
    make_user(db, 'sam@example.org', password='secret123')

    _login(client, 'sam@example.org', 'wrong-password')
    wrong_password = flashed_messages(client)
    _login(client, 'ghost@example.org', 'secret123')
    unknown_email = flashed_messages(client)

    assert wrong_password == unknown_email == ['Incorrect email or password.']
    with client.session_transaction() as sess:
        assert 'identity' not in sess


def test_login_upgrades_plaintext_credential(client, db):
    make_user(db, 'legacy@example.org', password='letmein', hashed=False)

    response = _login(client, 'legacy@example.org', 'letmein')
    assert response.status_code == 302
    stored = _stored_password(db, 'legacy@example.org')
    assert stored.startswith('$2')

    client.get('/logout')
    _login(client, 'legacy@example.org', 'letmein')
    with client.session_transaction() as sess:
        assert sess['identity']['role'] == COMMON


def test_failed_login_leaves_credential_unchanged(client, db):
    make_user(db, 'sam@example.org', password='secret123')
    before = _stored_password(db, 'sam@example.org')
    _login(client, 'sam@example.org', 'nope')
    assert _stored_password(db, 'sam@example.org') == before


@pytest.mark.parametrize('app_config', [{'LOGIN_MAX_ATTEMPTS': 3}], indirect=True)
def test_repeated_failures_lock_the_account(client, db):
    make_user(db, 'sam@example.org', password='secret123')

    for _ in range(3):
        _login(client, 'sam@example.org', 'nope')
    flashed_messages(client)

    _login(client, 'sam@example.org', 'secret123')
    assert flashed_messages(client) == ['Too many failed attempts. Try again later.']
    with client.session_transaction() as sess:
        assert 'identity' not in sess


def test_logout_clears_session_and_follows_redirect_param(manager_client):
    response = manager_client.get('/logout?redirect=/events')
    assert response.headers['Location'].endswith('/events')
    with manager_client.session_transaction() as sess:
        assert 'identity' not in sess
        assert '_user_id' not in sess

    response = manager_client.get('/dashboard')
    assert '/login' in response.headers['Location']


def test_logout_ignores_external_redirect(manager_client):
    response = manager_client.get('/logout?redirect=//evil.example.com')
    assert 'evil' not in response.headers['Location']


class TestRegister:
    def _register(self, client, **overrides):
        data = {
            'first_name': 'Nia',
            'last_name': 'Lopez',
            'email': 'nia@example.org',
            'password': 'abcdef',
            'confirm_password': 'abcdef',
        }
        data.update(overrides)
        return client.post('/register', data=data)

    def test_register_creates_common_user_with_hashed_password(self, client, db):
        response = self._register(client)
        assert response.status_code == 302
        assert '/login' in response.headers['Location']

        user = db.query(User).filter(User.useremail == 'nia@example.org').one()
        assert user.userrole == COMMON
        assert user.password.startswith('$2')

    def test_register_ignores_submitted_role(self, client, db):
        self._register(client, role=MANAGER)
        user = db.query(User).filter(User.useremail == 'nia@example.org').one()
        assert user.userrole == COMMON

    @pytest.mark.parametrize('overrides, message', [
        ({'last_name': ''}, b'All fields are required.'),
        ({'confirm_password': 'abcdeg'}, b'Passwords do not match.'),
        ({'password': 'abc', 'confirm_password': 'abc'}, b'at least 6 characters'),
    ])
    def test_register_validation_keeps_form_values(self, client, db, overrides, message):
        response = self._register(client, **overrides)
        assert response.status_code == 200
        assert message in response.data
        assert b'nia@example.org' in response.data
        assert db.query(User).count() == 0

    def test_register_refuses_duplicate_email(self, client, db):
        make_user(db, 'nia@example.org')
        response = self._register(client)
        assert response.status_code == 200
        assert b'already exists' in response.data
        assert db.query(User).count() == 1
