# backend/wsgi.py
# Entry point for `flask --app wsgi` and WSGI servers.
# Worker: celery -A wsgi.celery_app worker --loglevel INFO

from drinkquick import create_app

app = create_app()
celery_app = app.extensions["celery"]
