from datetime import date, time
from decimal import Decimal

import pytest

from ellarises.database import EventOccurrence, Registration, Survey
from ellarises.services.registrations import get_or_create_registration

from conftest import make_event, make_participant, make_template


@pytest.fixture
def pair(db):
    participant = make_participant(db, 'Ava', 'Ramirez', email='ava@example.org')
    event = make_event(db, make_template(db), name='Robotics Night', event_date=date(2024, 5, 1),
                       eventtimestart=time(18, 0))
    return participant, event


def _survey_form(participant, event, **overrides):
    data = {
        'participant_id': str(participant.participantid),
        'event_id': str(event.eventoccurrenceid),
        'satisfaction_score': '5',
        'usefulness_score': '4',
        'instructor_score': '',
        'recommendation_score': '0',
        'overall_score': '4.5',
        'nps_bucket': 'Promoter',
        'comments': 'Loved it',
        'submission_date': '2024-05-02',
        'submission_time': '10:15',
    }
    data.update(overrides)
    return data


def test_survey_add_creates_registration_once_and_reuses_it(manager_client, db, pair):
    participant, event = pair

    first = manager_client.post('/surveys/add', data=_survey_form(participant, event))
    second = manager_client.post('/surveys/add', data=_survey_form(participant, event, comments='Again'))
    assert first.status_code == second.status_code == 302

    registrations = db.query(Registration).all()
    assert len(registrations) == 1
    registration = registrations[0]
    assert registration.participantemail == 'ava@example.org'
    assert registration.eventname == 'Robotics Night'
    assert registration.eventdate == date(2024, 5, 1)
    assert registration.eventtimestart == time(18, 0)

    surveys = db.query(Survey).order_by(Survey.surveyid).all()
    assert [s.registrationid for s in surveys] == [registration.registrationid] * 2


def test_survey_scores_parse_defensively(manager_client, db, pair):
    participant, event = pair
    manager_client.post('/surveys/add', data=_survey_form(participant, event, usefulness_score='abc',
                                                          overall_score='NaN'))
    survey = db.query(Survey).one()
    assert survey.surveysatisfactionscore == 5
    assert survey.surveyusefulnessscore is None
    assert survey.surveyinstructorscore is None
    assert survey.surveyrecommendationscore == 0
    assert survey.surveyoverallscore is None


def test_survey_add_with_unknown_event_rerenders(manager_client, db, pair):
    participant, _ = pair
    response = manager_client.post('/surveys/add', data={
        'participant_id': str(participant.participantid),
        'event_id': '999',
        'comments': 'Keep me',
    })
    assert response.status_code == 200
    assert b'Invalid Participant or Event selected.' in response.data
    assert b'Keep me' in response.data
    assert db.query(Registration).count() == 0
    assert db.query(Survey).count() == 0


def test_survey_edit_requires_existing_registration(manager_client, db, pair):
    participant, event = pair
    other_event = make_event(db, make_template(db, 'Panel'), name='Career Panel')
    manager_client.post('/surveys/add', data=_survey_form(participant, event))
    survey = db.query(Survey).one()

    response = manager_client.post(f'/surveys/edit/{survey.surveyid}',
                                   data=_survey_form(participant, other_event))
    assert response.status_code == 200
    assert b'No matching registration found' in response.data
    assert db.query(Registration).count() == 1


def test_survey_edit_refreshes_own_snapshot(manager_client, db, pair):
    participant, event = pair
    manager_client.post('/surveys/add', data=_survey_form(participant, event))

    db.query(EventOccurrence).filter(EventOccurrence.eventoccurrenceid == event.eventoccurrenceid) \
        .update({'eventname': 'Robotics Night 2'})
    db.commit()

    survey = db.query(Survey).one()
    assert survey.eventname == 'Robotics Night'

    response = manager_client.post(f'/surveys/edit/{survey.surveyid}',
                                   data=_survey_form(participant, event, overall_score='3.25'))
    assert response.status_code == 302

    db.expire_all()
    survey = db.query(Survey).one()
    assert survey.eventname == 'Robotics Night 2'
    assert survey.surveyoverallscore == Decimal('3.25')
    # The registration keeps the name it was created with
    assert db.query(Registration).one().eventname == 'Robotics Night'


def test_view_requires_login(client, manager_client, db, pair):
    participant, event = pair
    manager_client.post('/surveys/add', data=_survey_form(participant, event))
    survey = db.query(Survey).one()

    assert '/login' in client.get(f'/surveys/view/{survey.surveyid}').headers['Location']
    response = manager_client.get(f'/surveys/view/{survey.surveyid}')
    assert response.status_code == 200
    assert b'Loved it' in response.data


def test_delete_survey(manager_client, db, pair):
    participant, event = pair
    manager_client.post('/surveys/add', data=_survey_form(participant, event))
    survey = db.query(Survey).one()

    manager_client.post(f'/surveys/delete/{survey.surveyid}')
    assert db.query(Survey).count() == 0
    assert db.query(Registration).count() == 1


def test_get_or_create_registration_returns_existing_row(db, pair):
    participant, event = pair
    first = get_or_create_registration(db, participant, event)
    second = get_or_create_registration(db, participant, event)
    assert first.registrationid == second.registrationid
    assert db.query(Registration).count() == 1


def test_out_of_range_scores_are_stored_as_unanswered(manager_client, db, pair):
    participant, event = pair
    response = manager_client.post('/surveys/add', data=_survey_form(
        participant, event,
        satisfaction_score='99999999999999999999',
        usefulness_score='11',
        instructor_score='-1',
        overall_score='1e30',
    ))
    assert response.status_code == 302

    survey = db.query(Survey).one()
    assert survey.surveysatisfactionscore is None
    assert survey.surveyusefulnessscore is None
    assert survey.surveyinstructorscore is None
    assert survey.surveyrecommendationscore == 0
    assert survey.surveyoverallscore is None


def test_oversized_event_id_is_an_invalid_pair(manager_client, db, pair):
    participant, _ = pair
    response = manager_client.post('/surveys/add', data={
        'participant_id': str(participant.participantid),
        'event_id': '99999999999999999999',
    })
    assert response.status_code == 200
    assert b'Invalid Participant or Event selected.' in response.data
    assert db.query(Registration).count() == 0
