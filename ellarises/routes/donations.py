import logging

from flask import Blueprint, flash, redirect, render_template, request, url_for
from sqlalchemy import String, cast

from ellarises.app_extensions import limiter
from ellarises.database import Donation, Participant, UserDonor, get_db
from ellarises.services.guards import MANAGER_ONLY
from ellarises.services.search import SearchFields
from ellarises.utils.decorators import auth_required, listing_required, role_required
from ellarises.utils.errors import ValidationError
from ellarises.utils.listing import list_page
from ellarises.utils.request_parsing import (
    format_date_input, parse_donation_amount, parse_id, require_date, require_text,
)

logger = logging.getLogger(__name__)

donations_bp = Blueprint('donations_bp', __name__)

SEARCH_FIELDS = SearchFields(
    columns=(Participant.participantfirstname, Participant.participantlastname,
             cast(Donation.donationdate, String)),
    first_name=Participant.participantfirstname,
    last_name=Participant.participantlastname,
)

USER_DONOR_SEARCH_FIELDS = SearchFields(
    columns=(UserDonor.userdonorfirstname, UserDonor.userdonorlastname),
    first_name=UserDonor.userdonorfirstname,
    last_name=UserDonor.userdonorlastname,
)


def _donation_values(db, form) -> dict:
    # Amount is checked before the participant lookup
    amount = parse_donation_amount(form.get('amount'))
    participant_id = parse_id(form.get('participant_id'))
    participant = None
    if participant_id is not None:
        participant = db.query(Participant).filter(Participant.participantid == participant_id).first()
    if participant is None:
        raise ValidationError('Invalid Participant selected.')

    return {
        'participantid': participant.participantid,
        'participantemail': participant.participantemail,
        'donationamount': amount,
        'donationdate': require_date(form.get('donation_date'), 'Donation date'),
    }


def _user_donor_values(form) -> dict:
    require_text(form, 'userdonorfirstname', 'userdonorlastname',
                 message='First and last name are required.')
    return {
        'userdonorfirstname': form['userdonorfirstname'].strip(),
        'userdonorlastname': form['userdonorlastname'].strip(),
        'userdonoramount': parse_donation_amount(form.get('userdonoramount')),
        'userdonordate': require_date(form.get('userdonordate'), 'Donation date'),
    }


def _participants(db):
    return db.query(Participant).order_by(Participant.participantlastname, Participant.participantfirstname).all()


@donations_bp.route('/', strict_slashes=False)
@listing_required('donations')
def index():
    db = get_db()
    query = (
        db.query(Donation, Participant)
        .join(Participant, Donation.participantid == Participant.participantid)
        .order_by(Donation.donationid)
    )
    result = list_page(query, SEARCH_FIELDS)

    donor_query = db.query(UserDonor).order_by(UserDonor.userdonorid)
    user_donors = list_page(donor_query, USER_DONOR_SEARCH_FIELDS,
                            search_arg='userDonorSearch', page_arg='userDonorPage')
    return render_template('donations/index.html', result=result, user_donors=user_donors)


@donations_bp.route('/add', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def add():
    db = get_db()
    if request.method == 'GET':
        return render_template('donations/add.html', participants=_participants(db), form_data={})

    try:
        values = _donation_values(db, request.form)
    except ValidationError as error:
        return render_template('donations/add.html', participants=_participants(db), error=error.message,
                               form_data=request.form)

    donation = Donation(**values)
    db.add(donation)
    db.commit()

    logger.info("Donation %s recorded for participant %s", donation.donationid, donation.participantid)
    flash('Donation added successfully!', 'success')
    return redirect(url_for('donations_bp.index'))


@donations_bp.route('/edit/<int:donation_id>', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def edit(donation_id):
    db = get_db()
    donation = db.query(Donation).filter(Donation.donationid == donation_id).first()
    if donation is None:
        return redirect(url_for('donations_bp.index'))

    if request.method == 'GET':
        form_data = {
            'participant_id': donation.participantid,
            'amount': donation.donationamount,
            'donation_date': format_date_input(donation.donationdate),
        }
        return render_template('donations/edit.html', donation_id=donation_id,
                               participants=_participants(db), form_data=form_data)

    try:
        values = _donation_values(db, request.form)
    except ValidationError as error:
        return render_template('donations/edit.html', donation_id=donation_id, participants=_participants(db),
                               error=error.message, form_data=request.form)

    for column, value in values.items():
        setattr(donation, column, value)
    db.commit()

    flash('Donation updated successfully!', 'success')
    return redirect(url_for('donations_bp.index'))


@donations_bp.route('/delete/<int:donation_id>', methods=['POST'])
@auth_required
@role_required(MANAGER_ONLY)
def delete(donation_id):
    db = get_db()
    deleted = db.query(Donation).filter(Donation.donationid == donation_id).delete()
    db.commit()
    if deleted:
        flash('Donation deleted successfully!', 'success')
    return redirect(url_for('donations_bp.index'))


@donations_bp.route('/userdonor/add', methods=['GET', 'POST'])
@limiter.limit('30 per hour', methods=['POST'])
def userdonor_add():
    """Public donation form for supporters who are not enrolled participants."""
    if request.method == 'GET':
        return render_template('donations/userdonor/add.html', form_data={})

    try:
        values = _user_donor_values(request.form)
    except ValidationError as error:
        return render_template('donations/userdonor/add.html', error=error.message, form_data=request.form)

    db = get_db()
    donor = UserDonor(**values)
    db.add(donor)
    db.commit()

    logger.info("Manual donation %s recorded", donor.userdonorid)
    flash('Thank you for your donation!', 'success')
    return redirect(url_for('donations_bp.userdonor_add'))


@donations_bp.route('/userdonor/edit/<int:donor_id>', methods=['GET', 'POST'])
@auth_required
@role_required(MANAGER_ONLY)
def userdonor_edit(donor_id):
    db = get_db()
    donor = db.query(UserDonor).filter(UserDonor.userdonorid == donor_id).first()
    if donor is None:
        return redirect(url_for('donations_bp.index'))

    if request.method == 'GET':
        form_data = {
            'userdonorfirstname': donor.userdonorfirstname,
            'userdonorlastname': donor.userdonorlastname,
            'userdonoramount': donor.userdonoramount,
            'userdonordate': format_date_input(donor.userdonordate),
        }
        return render_template('donations/userdonor/edit.html', donor_id=donor_id, form_data=form_data)

    try:
        values = _user_donor_values(request.form)
    except ValidationError as error:
        return render_template('donations/userdonor/edit.html', donor_id=donor_id, error=error.message,
                               form_data=request.form)

    for column, value in values.items():
        setattr(donor, column, value)
    db.commit()

    flash('Donor updated successfully!', 'success')
    return redirect(url_for('donations_bp.index'))


@donations_bp.route('/userdonor/delete/<int:donor_id>', methods=['POST'])
@auth_required
@role_required(MANAGER_ONLY)
def userdonor_delete(donor_id):
    db = get_db()
    deleted = db.query(UserDonor).filter(UserDonor.userdonorid == donor_id).delete()
    db.commit()
    if deleted:
        flash('Donor deleted successfully!', 'success')
    return redirect(url_for('donations_bp.index'))
