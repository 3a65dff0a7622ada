"""
Survey pages.

A survey always hangs off a registration (participant + event occurrence).
Adding a survey creates that registration when it is missing; editing one
only accepts a pair that is already registered. Both copy the participant
email and event name/date/start time onto the survey row at write time.
"""

from flask import Blueprint, flash, redirect, render_template, request, url_for

from ellarises.config.improved_logging_config import LogCategory, get_smart_logger
from ellarises.database import EventOccurrence, Participant, Registration, Survey, get_db
from ellarises.services.guards import MANAGER_ONLY
from ellarises.services.registrations import find_registration, get_or_create_registration
from ellarises.services.search import SearchFields
from ellarises.utils.decorators import auth_required, listing_required, role_required
from ellarises.utils.errors import ValidationError
from ellarises.utils.listing import list_page
from ellarises.utils.request_parsing import (
    format_date_input, parse_date, parse_decimal, parse_id, parse_int, parse_time,
)

logger = get_smart_logger(__name__, LogCategory.BUSINESS)

surveys_bp = Blueprint('surveys_bp', __name__)

SEARCH_FIELDS = SearchFields(columns=(Survey.participantemail, Survey.eventname))

INVALID_PAIR_MESSAGE = 'Invalid Participant or Event selected.'
NO_REGISTRATION_MESSAGE = 'No matching registration found for the selected participant and event.'

# Answers outside the scale are stored as unanswered
MIN_SCORE = 0
MAX_SCORE = 10

SCORE_FIELDS = {
    'satisfaction_score': 'surveysatisfactionscore',
    'usefulness_score': 'surveyusefulnessscore',
    'instructor_score': 'surveyinstructorscore',
    'recommendation_score': 'surveyrecommendationscore',
}


def _resolve_pair(db, form):
    participant_id = parse_id(form.get('participant_id'))
    event_id = parse_id(form.get('event_id'))
    participant = None
    event = None
    if participant_id is not None:
        participant = db.query(Participant).filter(Participant.participantid == participant_id).first()
    if event_id is not None:
        event = db.query(EventOccurrence).filter(EventOccurrence.eventoccurrenceid == event_id).first()
    if participant is None or event is None:
        raise ValidationError(INVALID_PAIR_MESSAGE)
    return participant, event


def _answer_values(form) -> dict:
    values = {column: parse_int(form.get(field), minimum=MIN_SCORE, maximum=MAX_SCORE)
              for field, column in SCORE_FIELDS.items()}
    overall = parse_decimal(form.get('overall_score'))
    if overall is not None and not MIN_SCORE <= overall <= MAX_SCORE:
        overall = None
    values.update({
        'surveyoverallscore': overall,
        'surveynpsbucket': (form.get('nps_bucket') or '').strip() or None,
        'surveycomments': (form.get('comments') or '').strip() or None,
        'surveysubmissiondate': parse_date(form.get('submission_date')),
        'surveysubmissiontime': parse_time(form.get('submission_time')),
    })
    return values


def _snapshot_values(registration: Registration, participant: Participant, event: EventOccurrence) -> dict:
    return {
        'registrationid': registration.registrationid,
        'participantemail': participant.participantemail,
        'eventname': event.eventname,
        'eventdate': event.eventdate,
        'eventtimestart': event.eventtimestart,
    }


def _form_data(survey: Survey, registration: Registration) -> dict:
    data = {field: '' if getattr(survey, column) is None else getattr(survey, column)
            for field, column in SCORE_FIELDS.items()}
    data.update({
        'participant_id': registration.participantid,
        'event_id': registration.eventoccurrenceid,
        'overall_score': '' if survey.surveyoverallscore is None else survey.surveyoverallscore,
        'nps_bucket': survey.surveynpsbucket or '',
        'comments': survey.surveycomments or '',
        'submission_date': format_date_input(survey.surveysubmissiondate),
        'submission_time': survey.surveysubmissiontime.strftime('%H:%M') if survey.surveysubmissiontime else '',
    })
    return data


def _choices(db) -> dict:
    return {
        'participants': db.query(Participant).order_by(Participant.participantlastname,
                                                       Participant.participantfirstname).all(),
        'events': db.query(EventOccurrence).order_by(EventOccurrence.eventdate.desc()).all(),
    }


def _get_survey_with_registration(db, survey_id):
    return (
        db.query(Survey, Registration)
        .join(Registration, Survey.registrationid == Registration.registrationid)
        .filter(Survey.surveyid == survey_id)
        .first()
    )


@surveys_bp.route('/', strict_slashes=False)
@listing_required('surveys')
def index():
    db = get_db()
    query = (
        db.query(Survey, Registration)
        .join(Registration, Survey.registrationid == Registration.registrationid)
        .order_by(Survey.surveyid)
    )
    result = list_page(query, SEARCH_FIELDS)
    return render_template('surveys/index.html', result=result)


@surveys_bp.route('/view/<int:survey_id>')
@auth_required
def view(survey_id):
    db = get_db()
    row = _get_survey_with_registration(db, survey_id)
    if row is None:
        return redirect(url_for('surveys_bp.index'))
    survey, registration = row
    return render_template('surveys/view.html', survey=survey, registration=registration)


@surveys_bp.route('/add', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def add():
    db = get_db()
    if request.method == 'GET':
        return render_template('surveys/add.html', form_data={}, **_choices(db))

    try:
        participant, event = _resolve_pair(db, request.form)
    except ValidationError as error:
        return render_template('surveys/add.html', error=error.message, form_data=request.form, **_choices(db))

    answers = _answer_values(request.form)
    registration = get_or_create_registration(db, participant, event)
    survey = Survey(**_snapshot_values(registration, participant, event), **answers)
    db.add(survey)
    db.commit()

    logger.business_event("Survey recorded", f"survey={survey.surveyid} registration={registration.registrationid}")
    flash('Survey added successfully!', 'success')
    return redirect(url_for('surveys_bp.index'))


@surveys_bp.route('/edit/<int:survey_id>', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def edit(survey_id):
    db = get_db()
    row = _get_survey_with_registration(db, survey_id)
    if row is None:
        return redirect(url_for('surveys_bp.index'))
    survey, current_registration = row

    if request.method == 'GET':
        return render_template('surveys/edit.html', survey_id=survey_id,
                               form_data=_form_data(survey, current_registration), **_choices(db))

    try:
        participant, event = _resolve_pair(db, request.form)
        registration = find_registration(db, participant.participantid, event.eventoccurrenceid)
        if registration is None:
            raise ValidationError(NO_REGISTRATION_MESSAGE)
    except ValidationError as error:
        return render_template('surveys/edit.html', survey_id=survey_id, error=error.message,
                               form_data=request.form, **_choices(db))

    values = _snapshot_values(registration, participant, event)
    values.update(_answer_values(request.form))
    for column, value in values.items():
        setattr(survey, column, value)
    db.commit()

    flash('Survey updated successfully!', 'success')
    return redirect(url_for('surveys_bp.index'))


@surveys_bp.route('/delete/<int:survey_id>', methods=['POST'])
@auth_required
@role_required(MANAGER_ONLY)
def delete(survey_id):
    db = get_db()
    deleted = db.query(Survey).filter(Survey.surveyid == survey_id).delete()
    db.commit()
    if deleted:
        flash('Survey deleted successfully!', 'success')
    return redirect(url_for('surveys_bp.index'))
