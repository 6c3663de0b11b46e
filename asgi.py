"""
asgi.py -- Process bootstrap for SessionWarden.

This is the ONLY file that loads configuration from the environment and
builds the app from it. api/main.py takes Settings as an argument; auth/
never sees Settings at all.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
