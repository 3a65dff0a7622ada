import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import IntegrityError

from ellarises.database import EventOccurrence, EventTemplate, get_db
from ellarises.services.guards import MANAGER_ONLY
from ellarises.services.search import SearchFields
from ellarises.utils.decorators import auth_required, listing_required, role_required
from ellarises.utils.errors import ValidationError
from ellarises.utils.listing import list_page
from ellarises.utils.request_parsing import (
    MAX_DB_INT, format_date_input, parse_date, parse_id, parse_int, parse_time, require_date,
    require_text,
)

logger = logging.getLogger(__name__)

events_bp = Blueprint('events_bp', __name__)

# Events have no person name, so multi-word searches match the whole phrase
SEARCH_FIELDS = SearchFields(columns=(EventOccurrence.eventname, EventOccurrence.eventlocation))


def _event_values(db, form) -> dict:
    require_text(form, 'event_name', message='Event name is required.')
    template_id = parse_id(form.get('template_id'))
    template = None
    if template_id is not None:
        template = db.query(EventTemplate).filter(EventTemplate.eventtemplateid == template_id).first()
    if template is None:
        raise ValidationError('Please select a valid event template.')

    # Negative, unparseable or oversized capacities are stored as unknown
    capacity = parse_int(form.get('capacity'), minimum=0, maximum=MAX_DB_INT)

    return {
        'eventtemplateid': template.eventtemplateid,
        'eventname': form['event_name'].strip(),
        'eventdate': require_date(form.get('event_date'), 'Event date'),
        'eventtimestart': parse_time(form.get('time_start')),
        'eventtimeend': parse_time(form.get('time_end')),
        'eventlocation': (form.get('location') or '').strip() or None,
        'eventcapacity': capacity,
        'eventregistrationdeadline': parse_date(form.get('registration_deadline')),
    }


def _form_data(event: EventOccurrence) -> dict:
    return {
        'template_id': event.eventtemplateid,
        'event_name': event.eventname,
        'event_date': format_date_input(event.eventdate),
        'time_start': event.eventtimestart.strftime('%H:%M') if event.eventtimestart else '',
        'time_end': event.eventtimeend.strftime('%H:%M') if event.eventtimeend else '',
        'location': event.eventlocation or '',
        'capacity': '' if event.eventcapacity is None else event.eventcapacity,
        'registration_deadline': format_date_input(event.eventregistrationdeadline),
    }


def _templates(db):
    return db.query(EventTemplate).order_by(EventTemplate.eventtype).all()


def _get_event(db, event_id):
    return db.query(EventOccurrence).filter(EventOccurrence.eventoccurrenceid == event_id).first()


@events_bp.route('/', strict_slashes=False)
@listing_required('events')
def index():
    db = get_db()
    query = (
        db.query(EventOccurrence, EventTemplate)
        .join(EventTemplate, EventOccurrence.eventtemplateid == EventTemplate.eventtemplateid)
        .order_by(EventOccurrence.eventdate.desc(), EventOccurrence.eventoccurrenceid)
    )
    result = list_page(query, SEARCH_FIELDS)
    return render_template('events/index.html', result=result)


@events_bp.route('/add', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def add():
    db = get_db()
    if request.method == 'GET':
        return render_template('events/add.html', templates=_templates(db), form_data={})

    try:
        values = _event_values(db, request.form)
    except ValidationError as error:
        return render_template('events/add.html', templates=_templates(db), error=error.message,
                               form_data=request.form)

    event = EventOccurrence(**values)
    db.add(event)
    db.commit()

    logger.info("Event occurrence %s created", event.eventoccurrenceid)
    flash('Event added successfully!', 'success')
    return redirect(url_for('events_bp.index'))


@events_bp.route('/edit/<int:event_id>', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def edit(event_id):
    db = get_db()
    event = _get_event(db, event_id)
    if event is None:
        return redirect(url_for('events_bp.index'))

    if request.method == 'GET':
        return render_template('events/edit.html', event_id=event_id, templates=_templates(db),
                               form_data=_form_data(event))

    try:
        values = _event_values(db, request.form)
    except ValidationError as error:
        return render_template('events/edit.html', event_id=event_id, templates=_templates(db),
                               error=error.message, form_data=request.form)

    # Registrations and surveys keep the name/date/time they were written with
    for column, value in values.items():
        setattr(event, column, value)
    db.commit()

    flash('Event updated successfully!', 'success')
    return redirect(url_for('events_bp.index'))


@events_bp.route('/delete/<int:event_id>', methods=['POST'])
@auth_required
@role_required(MANAGER_ONLY)
def delete(event_id):
    db = get_db()
    event = _get_event(db, event_id)
    if event is None:
        return redirect(url_for('events_bp.index'))

    db.delete(event)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        flash('This event has registrations and cannot be deleted.', 'error')
        return redirect(url_for('events_bp.index'))

    logger.info("Event occurrence %s deleted", event_id)
    flash('Event deleted successfully!', 'success')
    return redirect(url_for('events_bp.index'))
