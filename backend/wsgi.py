# backend/wsgi.py
from employee_space import create_app

app = create_app()
