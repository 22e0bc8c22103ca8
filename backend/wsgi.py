# backend/wsgi.py
from papeleria import create_app

app = create_app()
