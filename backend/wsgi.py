# backend/wsgi.py
from autocare import create_app

app = create_app()
