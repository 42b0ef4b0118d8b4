"""
Celery configuration for the payment reconciliation service.

Celery runs the work that must not block a request or a webhook response:
- Payout initiation for completed bookings
- The periodic sweep that retries failed payouts (django-celery-beat)
- Notification delivery

Redis is both the message broker and result backend. Tasks are
auto-discovered from every installed Django app's tasks.py.

Usage:
    from payments.tasks import process_payout_for_booking

    process_payout_for_booking.delay(str(booking.id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
