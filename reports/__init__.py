# reports/__init__.py

from .reporter import Reporter
