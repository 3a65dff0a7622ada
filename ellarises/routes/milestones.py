import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for

from ellarises.database import Milestone, Participant, get_db
from ellarises.services.guards import MANAGER_ONLY
from ellarises.services.search import SearchFields
from ellarises.utils.decorators import auth_required, listing_required, role_required
from ellarises.utils.errors import ValidationError
from ellarises.utils.listing import list_page
from ellarises.utils.request_parsing import format_date_input, parse_id, require_date, require_text

logger = logging.getLogger(__name__)

milestones_bp = Blueprint('milestones_bp', __name__)

SEARCH_FIELDS = SearchFields(
    columns=(Milestone.milestonetitle, Participant.participantfirstname, Participant.participantlastname),
    first_name=Participant.participantfirstname,
    last_name=Participant.participantlastname,
)


def _milestone_values(db, form) -> dict:
    participant_id = parse_id(form.get('participant_id'))
    participant = None
    if participant_id is not None:
        participant = db.query(Participant).filter(Participant.participantid == participant_id).first()
    if participant is None:
        raise ValidationError('Invalid Participant selected.')
    require_text(form, 'title', message='Milestone title is required.')

    return {
        'participantid': participant.participantid,
        'participantemail': participant.participantemail,
        'milestonetitle': form['title'].strip(),
        'milestonedate': require_date(form.get('milestone_date'), 'Milestone date'),
    }


def _participants(db):
    return db.query(Participant).order_by(Participant.participantlastname, Participant.participantfirstname).all()


def _get_milestone(db, milestone_id):
    return db.query(Milestone).filter(Milestone.milestoneid == milestone_id).first()


@milestones_bp.route('/', strict_slashes=False)
@listing_required('milestones')
def index():
    db = get_db()
    query = (
        db.query(Milestone, Participant)
        .join(Participant, Milestone.participantid == Participant.participantid)
        .order_by(Milestone.milestoneid)
    )
    result = list_page(query, SEARCH_FIELDS)
    return render_template('milestones/index.html', result=result)


@milestones_bp.route('/add', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def add():
    db = get_db()
    if request.method == 'GET':
        return render_template('milestones/add.html', participants=_participants(db), form_data={})

    try:
        values = _milestone_values(db, request.form)
    except ValidationError as error:
        return render_template('milestones/add.html', participants=_participants(db), error=error.message,
                               form_data=request.form)

    milestone = Milestone(**values)
    db.add(milestone)
    db.commit()

    logger.info("Milestone %s created for participant %s", milestone.milestoneid, milestone.participantid)
    flash('Milestone added successfully!', 'success')
    return redirect(url_for('milestones_bp.index'))


@milestones_bp.route('/edit/<int:milestone_id>', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def edit(milestone_id):
    db = get_db()
    milestone = _get_milestone(db, milestone_id)
    if milestone is None:
        return redirect(url_for('milestones_bp.index'))

    if request.method == 'GET':
        form_data = {
            'participant_id': milestone.participantid,
            'title': milestone.milestonetitle,
            'milestone_date': format_date_input(milestone.milestonedate),
        }
        return render_template('milestones/edit.html', milestone_id=milestone_id,
                               participants=_participants(db), form_data=form_data)

    try:
        values = _milestone_values(db, request.form)
    except ValidationError as error:
        return render_template('milestones/edit.html', milestone_id=milestone_id, participants=_participants(db),
                               error=error.message, form_data=request.form)

    updated = db.query(Milestone).filter(Milestone.milestoneid == milestone_id).update(values)
    db.commit()
    if updated:
        flash('Milestone updated successfully!', 'success')
    return redirect(url_for('milestones_bp.index'))


@milestones_bp.route('/delete/<int:milestone_id>', methods=['POST'])
@auth_required
@role_required(MANAGER_ONLY)
def delete(milestone_id):
    db = get_db()
    deleted = db.query(Milestone).filter(Milestone.milestoneid == milestone_id).delete()
    db.commit()
    if deleted:
        flash('Milestone deleted successfully!', 'success')
    return redirect(url_for('milestones_bp.index'))
