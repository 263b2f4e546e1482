# backend/wsgi.py
from realty_crm import create_app

app = create_app()
