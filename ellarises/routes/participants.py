import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import IntegrityError

from ellarises.database import Participant, get_db
from ellarises.services.guards import MANAGER_ONLY
from ellarises.services.search import SearchFields
from ellarises.utils.decorators import auth_required, listing_required, role_required
from ellarises.utils.errors import ValidationError
from ellarises.utils.listing import list_page
from ellarises.utils.request_parsing import format_date_input, parse_date, parse_money, require_text

logger = logging.getLogger(__name__)

participants_bp = Blueprint('participants_bp', __name__)

SEARCH_FIELDS = SearchFields(
    columns=(Participant.participantfirstname, Participant.participantlastname, Participant.participantemail),
    first_name=Participant.participantfirstname,
    last_name=Participant.participantlastname,
)

DUPLICATE_EMAIL_MESSAGE = 'A participant with that email already exists.'


def _participant_values(form) -> dict:
    """Validate the participant form and map it onto model columns."""
    require_text(form, 'first_name', 'last_name', 'email',
                 message='First name, last name and email are required.')
    return {
        'participantfirstname': form['first_name'].strip(),
        'participantlastname': form['last_name'].strip(),
        'participantemail': form['email'].strip(),
        'participantdob': parse_date(form.get('dob')),
        'participantphone': (form.get('phone') or '').strip() or None,
        'participantcity': (form.get('city') or '').strip() or None,
        'participantstate': (form.get('state') or '').strip() or None,
        'participantzip': (form.get('zip') or '').strip() or None,
        'participantschooloremployer': (form.get('school_or_employer') or '').strip() or None,
        'participantfieldofinterest': (form.get('field_of_interest') or '').strip() or None,
        'totaldonations': parse_money(form.get('total_donations')),
    }


def _form_data(participant: Participant) -> dict:
    return {
        'first_name': participant.participantfirstname,
        'last_name': participant.participantlastname,
        'email': participant.participantemail,
        'dob': format_date_input(participant.participantdob),
        'phone': participant.participantphone or '',
        'city': participant.participantcity or '',
        'state': participant.participantstate or '',
        'zip': participant.participantzip or '',
        'school_or_employer': participant.participantschooloremployer or '',
        'field_of_interest': participant.participantfieldofinterest or '',
        'total_donations': participant.totaldonations,
    }


def _get_participant(db, participant_id):
    return db.query(Participant).filter(Participant.participantid == participant_id).first()


@participants_bp.route('/', strict_slashes=False)
@listing_required('participants')
def index():
    db = get_db()
    query = db.query(Participant).order_by(Participant.participantid)
    result = list_page(query, SEARCH_FIELDS)
    return render_template('participants/index.html', result=result)


@participants_bp.route('/add', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def add():
    if request.method == 'GET':
        return render_template('participants/add.html', form_data={})

    try:
        values = _participant_values(request.form)
    except ValidationError as error:
        return render_template('participants/add.html', error=error.message, form_data=request.form)

    db = get_db()
    participant = Participant(**values)
    db.add(participant)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return render_template('participants/add.html', error=DUPLICATE_EMAIL_MESSAGE, form_data=request.form)

    logger.info("Participant %s created", participant.participantid)
    flash('Participant added successfully!', 'success')
    return redirect(url_for('participants_bp.index'))


@participants_bp.route('/edit/<int:participant_id>', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def edit(participant_id):
    db = get_db()
    participant = _get_participant(db, participant_id)
    if participant is None:
        return redirect(url_for('participants_bp.index'))

    if request.method == 'GET':
        return render_template('participants/edit.html', participant_id=participant_id,
                               form_data=_form_data(participant))

    try:
        values = _participant_values(request.form)
    except ValidationError as error:
        return render_template('participants/edit.html', participant_id=participant_id,
                               error=error.message, form_data=request.form)

    # Snapshots on donations, milestones, surveys and registrations stay as written
    for column, value in values.items():
        setattr(participant, column, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return render_template('participants/edit.html', participant_id=participant_id,
                               error=DUPLICATE_EMAIL_MESSAGE, form_data=request.form)

    flash('Participant updated successfully!', 'success')
    return redirect(url_for('participants_bp.index'))


@participants_bp.route('/delete/<int:participant_id>', methods=['POST'])
@auth_required
@role_required(MANAGER_ONLY)
def delete(participant_id):
    db = get_db()
    participant = _get_participant(db, participant_id)
    if participant is None:
        return redirect(url_for('participants_bp.index'))

    db.delete(participant)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        flash('This participant still has donations, milestones or registrations and cannot be deleted.', 'error')
        return redirect(url_for('participants_bp.index'))

    logger.info("Participant %s deleted", participant_id)
    flash('Participant deleted successfully!', 'success')
    return redirect(url_for('participants_bp.index'))
