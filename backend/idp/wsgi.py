"""WSGI entry point: ``gunicorn -c gunicorn.conf.py idp.wsgi:app``."""

from idp import create_app

app = create_app()
