"""
ASGI config for the payment reconciliation service.

Uvicorn serves the application through this entry point. Only HTTP is
routed; webhooks and the REST API are plain request/response.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_asgi_application()
