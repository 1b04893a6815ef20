# backend/wsgi.py
from buygroup import create_app

app = create_app()
