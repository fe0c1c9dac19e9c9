# api/__init__.py

from .server import create_app
