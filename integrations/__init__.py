# integrations/__init__.py

from .ssllabs import SSLLabsClient
