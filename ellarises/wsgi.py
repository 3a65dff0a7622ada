"""WSGI entrypoint for production servers (gunicorn/uwsgi).

Usage:
  gunicorn -c ops/gunicorn/gunicorn.conf.py
"""

from ellarises.app import create_app

app = create_app()
