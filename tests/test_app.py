from decimal import Decimal
from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from ellarises.app import STORE_FAILURE_MESSAGE
from ellarises.config import parse_public_listings
from ellarises.database import User, UserDonor

from conftest import flashed_messages, make_participant


def _store_down():
    return OperationalError('SELECT 1', {}, Exception('database is unavailable'))


def test_home_page_shows_totals(client, db):
    make_participant(db, 'Ava', 'Ramirez', totaldonations=Decimal('1200.00'))
    make_participant(db, 'Zoe', 'Jones', totaldonations=Decimal('50.25'))
    db.add(UserDonor(userdonorfirstname='Grace', userdonorlastname='Hopper', userdonoramount=Decimal('10.00')))
    db.commit()

    response = client.get('/')
    assert response.status_code == 200
    assert b'<strong>2</strong> participants' in response.data
    assert b'$1,260.25' in response.data


def test_home_page_survives_store_failure(client):
    with mock.patch('ellarises.routes.home._home_totals', side_effect=_store_down()):
        response = client.get('/')
    assert response.status_code == 200
    assert b'$0.00' in response.data


def test_list_failure_redirects_home_with_generic_message(staff_client):
    with mock.patch('ellarises.routes.participants.list_page', side_effect=_store_down()):
        response = staff_client.get('/participants')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
    assert STORE_FAILURE_MESSAGE in flashed_messages(staff_client)


def test_form_post_failure_returns_to_form(manager_client):
    fake_db = mock.MagicMock()
    fake_db.commit.side_effect = _store_down()
    with mock.patch('ellarises.routes.participants.get_db', return_value=fake_db):
        response = manager_client.post('/participants/add', data={
            'first_name': 'Ava', 'last_name': 'Ramirez', 'email': 'ava@example.org',
        })
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/participants/add')
    assert STORE_FAILURE_MESSAGE in flashed_messages(manager_client)


def test_delete_failure_returns_to_resource_list(manager_client):
    fake_db = mock.MagicMock()
    fake_db.query.side_effect = _store_down()
    with mock.patch('ellarises.routes.events.get_db', return_value=fake_db):
        response = manager_client.post('/events/delete/1')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/events/')


def test_security_headers_and_request_id(client):
    response = client.get('/', headers={'X-Request-ID': 'abc123'})
    assert response.headers['X-Frame-Options'] == 'DENY'
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert "frame-ancestors 'none'" in response.headers['Content-Security-Policy']
    assert response.headers['X-Request-ID'] == 'abc123'
    assert 'Strict-Transport-Security' not in response.headers


@pytest.mark.parametrize('app_config', [{'STRICT_TRANSPORT_SECURITY': True}], indirect=True)
def test_hsts_when_enabled(client):
    assert 'max-age=' in client.get('/').headers['Strict-Transport-Security']


def test_teapot(client):
    response = client.get('/teapot')
    assert response.status_code == 418


def test_unknown_page_renders_404(client):
    response = client.get('/no-such-page')
    assert response.status_code == 404
    assert b'The requested page was not found.' in response.data


def test_get_on_post_only_route_is_405(manager_client):
    assert manager_client.get('/participants/delete/1').status_code == 405


def test_dashboard_requires_login(client, manager_client):
    assert '/login' in client.get('/dashboard').headers['Location']
    response = manager_client.get('/dashboard')
    assert response.status_code == 200
    assert b'Maria' in response.data


def test_public_listings_parsing():
    assert parse_public_listings(None) == frozenset()
    assert parse_public_listings('Events, participants ,bogus') == frozenset({'events', 'participants'})
    assert parse_public_listings('users,events') == frozenset({'events'})


def test_create_user_command(app, db):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'create-user', '--email', 'boss@example.org', '--first-name', 'Bo', '--last-name', 'Ss',
        '--password', 'longenough',
    ])
    assert result.exit_code == 0, result.output
    assert 'Created manager account boss@example.org' in result.output
    assert db.query(User).filter(User.useremail == 'boss@example.org').one().userrole == 'manager'


def test_create_user_command_rejects_duplicate(app, db, manager):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'create-user', '--email', 'manager@example.org', '--first-name', 'M', '--last-name', 'X',
        '--password', 'longenough',
    ])
    assert result.exit_code != 0
    assert 'already exists' in result.output


def test_oversized_record_id_in_url_is_not_found(manager_client):
    response = manager_client.get('/participants/edit/99999999999999999999')
    assert response.status_code == 404
