# backend/wsgi.py
from bizzflow import create_app

app = create_app()
