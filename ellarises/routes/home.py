import logging
from decimal import Decimal

from flask import Blueprint, render_template
from flask_login import current_user
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ellarises.database import Participant, UserDonor, get_db
from ellarises.utils.decorators import auth_required

logger = logging.getLogger(__name__)

home_bp = Blueprint('home_bp', __name__)


def _home_totals(db):
    participant_count = db.query(func.count(Participant.participantid)).scalar() or 0
    participant_donations = db.query(func.coalesce(func.sum(Participant.totaldonations), 0)).scalar()
    donor_donations = db.query(func.coalesce(func.sum(UserDonor.userdonoramount), 0)).scalar()
    return participant_count, Decimal(participant_donations or 0) + Decimal(donor_donations or 0)


@home_bp.route('/')
def index():
    db = get_db()
    try:
        participant_count, total_donations = _home_totals(db)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to load home page totals", exc_info=True)
        participant_count, total_donations = 0, Decimal('0.00')

    return render_template(
        'index.html',
        participant_count=participant_count,
        total_donations=total_donations.quantize(Decimal('0.01')),
    )


@home_bp.route('/dashboard')
@auth_required
def dashboard():
    return render_template('dashboard.html', user=current_user)


@home_bp.route('/teapot')
def teapot():
    return render_template('teapot.html'), 418
