"""Maintenance commands, run as `flask --app ellarises.wsgi <command>`."""

import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy.exc import IntegrityError

from ellarises.database import Base, ENGINE_KEY, SESSION_FACTORY_KEY
from ellarises.services.auth_models import ALLOWED_ROLES, MANAGER
from ellarises.services.user_management import user_manager


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create any missing tables."""
    Base.metadata.create_all(bind=current_app.extensions[ENGINE_KEY])
    click.echo('Database tables are in place.')


@click.command('create-user')
@click.option('--email', prompt=True)
@click.option('--first-name', prompt=True)
@click.option('--last-name', prompt=True)
@click.option('--role', type=click.Choice(sorted(ALLOWED_ROLES)), default=MANAGER, show_default=True)
@click.password_option()
@with_appcontext
def create_user_command(email, first_name, last_name, role, password):
    """Add a staff account, typically the first manager."""
    db = current_app.extensions[SESSION_FACTORY_KEY]()
    try:
        user = user_manager.create_user(db, first_name, last_name, email, password, role)
    except IntegrityError:
        db.rollback()
        raise click.ClickException(f'A user with email {email} already exists.')
    finally:
        db.close()
    click.echo(f'Created {role} account {email} (id {user.userid}).')


def register_cli(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_user_command)
