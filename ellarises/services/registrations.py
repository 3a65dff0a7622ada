"""Registration lookups backing survey writes."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ellarises.database import EventOccurrence, Participant, Registration

logger = logging.getLogger(__name__)


def find_registration(db: Session, participant_id: int, event_id: int) -> Optional[Registration]:
    return (
        db.query(Registration)
        .filter(Registration.participantid == participant_id,
                Registration.eventoccurrenceid == event_id)
        .first()
    )


def get_or_create_registration(db: Session, participant: Participant, event: EventOccurrence) -> Registration:
    """Return the registration linking participant and event, creating it when missing.

    A new registration captures the participant email and event name, date and
    start time as they are right now. A concurrent insert of the same pair is
    caught by the unique constraint and resolved by re-reading the winner.
    """
    registration = find_registration(db, participant.participantid, event.eventoccurrenceid)
    if registration is not None:
        return registration

    registration = Registration(
        participantid=participant.participantid,
        eventoccurrenceid=event.eventoccurrenceid,
        participantemail=participant.participantemail,
        eventname=event.eventname,
        eventdate=event.eventdate,
        eventtimestart=event.eventtimestart,
    )
    db.add(registration)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_registration(db, participant.participantid, event.eventoccurrenceid)
        if existing is None:
            raise
        logger.info("Registration for participant %s / event %s created concurrently, reusing it",
                    participant.participantid, event.eventoccurrenceid)
        return existing

    db.refresh(registration)
    logger.info("Created registration %s for participant %s / event %s",
                registration.registrationid, participant.participantid, event.eventoccurrenceid)
    return registration
