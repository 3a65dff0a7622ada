"""
Relational store for the Ella Rises portal: engine wiring and table models.

Column names follow the production Postgres schema (all lower case, entity
prefixed) so raw reports written against that database keep working.
"""

from flask import current_app, g
from sqlalchemy import (
    Column, Date, ForeignKey, Integer, Numeric, String, Text, Time,
    UniqueConstraint, create_engine, event,
)
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ellarises.config import DatabaseConfig

Base = declarative_base()

SESSION_FACTORY_KEY = 'ellarises.session_factory'
ENGINE_KEY = 'ellarises.engine'


def build_engine(db_config: DatabaseConfig):
    url = db_config.url
    engine_kwargs = {'echo': db_config.echo, 'pool_pre_ping': True}

    if url.startswith('sqlite'):
        engine_kwargs['connect_args'] = {'check_same_thread': False}
        if url in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection, otherwise every checkout sees an empty database
            engine_kwargs['poolclass'] = StaticPool

    engine = create_engine(url, **engine_kwargs)

    if url.startswith('sqlite'):
        @event.listens_for(engine, 'connect')
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON;')
            cursor.close()

    return engine


def init_app(app, db_config: DatabaseConfig):
    """Bind a session factory to the app and close the request session on teardown."""
    engine = build_engine(db_config)
    app.extensions[ENGINE_KEY] = engine
    app.extensions[SESSION_FACTORY_KEY] = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    if db_config.auto_create_schema:
        Base.metadata.create_all(bind=engine)

    @app.teardown_appcontext
    def close_db_session(exc):
        db = g.pop('db', None)
        if db is not None:
            if exc is not None:
                db.rollback()
            db.close()

    return engine


def get_db():
    """Return the SQLAlchemy session for the current request."""
    if 'db' not in g:
        g.db = current_app.extensions[SESSION_FACTORY_KEY]()
    return g.db


class User(Base):
    __tablename__ = "users"

    userid = Column(Integer, primary_key=True, index=True)
    userfirstname = Column(String(100), nullable=False)
    userlastname = Column(String(100), nullable=False)
    useremail = Column(String(255), unique=True, index=True, nullable=False)
    # bcrypt hash, or plaintext for accounts imported before hashing existed
    password = Column(String(255), nullable=False)
    userrole = Column(String(20), nullable=False, default='common')


class Participant(Base):
    __tablename__ = "participants"

    participantid = Column(Integer, primary_key=True, index=True)
    participantfirstname = Column(String(100), nullable=False)
    participantlastname = Column(String(100), nullable=False)
    participantemail = Column(String(255), unique=True, index=True)
    participantdob = Column(Date)
    participantphone = Column(String(30))
    participantcity = Column(String(100))
    participantstate = Column(String(50))
    participantzip = Column(String(20))
    participantschooloremployer = Column(String(255))
    participantfieldofinterest = Column(String(255))
    totaldonations = Column(Numeric(12, 2), nullable=False, default=0)


class EventTemplate(Base):
    __tablename__ = "eventtemplates"

    eventtemplateid = Column(Integer, primary_key=True, index=True)
    eventtype = Column(String(100), nullable=False)
    eventdescription = Column(Text)


class EventOccurrence(Base):
    __tablename__ = "eventoccurrences"

    eventoccurrenceid = Column(Integer, primary_key=True, index=True)
    eventtemplateid = Column(Integer, ForeignKey('eventtemplates.eventtemplateid'), nullable=False)
    eventname = Column(String(255), nullable=False)
    eventdate = Column(Date, nullable=False)
    eventtimestart = Column(Time)
    eventtimeend = Column(Time)
    eventlocation = Column(String(255))
    eventcapacity = Column(Integer)
    eventregistrationdeadline = Column(Date)


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (
        UniqueConstraint('participantid', 'eventoccurrenceid', name='uq_registrations_participant_event'),
    )

    registrationid = Column(Integer, primary_key=True, index=True)
    participantid = Column(Integer, ForeignKey('participants.participantid'), nullable=False)
    eventoccurrenceid = Column(Integer, ForeignKey('eventoccurrences.eventoccurrenceid'), nullable=False)
    # Snapshot columns, copied at write time and never synced afterwards
    participantemail = Column(String(255))
    eventname = Column(String(255))
    eventdate = Column(Date)
    eventtimestart = Column(Time)


class Survey(Base):
    __tablename__ = "surveys"

    surveyid = Column(Integer, primary_key=True, index=True)
    registrationid = Column(Integer, ForeignKey('registrations.registrationid'), nullable=False)
    participantemail = Column(String(255))
    eventname = Column(String(255))
    eventdate = Column(Date)
    eventtimestart = Column(Time)
    surveysatisfactionscore = Column(Integer)
    surveyusefulnessscore = Column(Integer)
    surveyinstructorscore = Column(Integer)
    surveyrecommendationscore = Column(Integer)
    surveyoverallscore = Column(Numeric(4, 2))
    surveynpsbucket = Column(String(20))
    surveycomments = Column(Text)
    surveysubmissiondate = Column(Date)
    surveysubmissiontime = Column(Time)


class Milestone(Base):
    __tablename__ = "milestones"

    milestoneid = Column(Integer, primary_key=True, index=True)
    participantid = Column(Integer, ForeignKey('participants.participantid'), nullable=False)
    participantemail = Column(String(255))
    milestonetitle = Column(String(255), nullable=False)
    milestonedate = Column(Date)


class Donation(Base):
    __tablename__ = "donations"

    donationid = Column(Integer, primary_key=True, index=True)
    participantid = Column(Integer, ForeignKey('participants.participantid'), nullable=False)
    participantemail = Column(String(255))
    donationamount = Column(Numeric(12, 2), nullable=False)
    donationdate = Column(Date)


class UserDonor(Base):
    """Donations entered by hand for donors who are not participants."""
    __tablename__ = "userdonor"

    userdonorid = Column(Integer, primary_key=True, index=True)
    userdonorfirstname = Column(String(100), nullable=False)
    userdonorlastname = Column(String(100), nullable=False)
    userdonoramount = Column(Numeric(12, 2), nullable=False)
    userdonordate = Column(Date)
