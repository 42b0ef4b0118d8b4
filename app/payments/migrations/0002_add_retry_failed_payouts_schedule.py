"""
Add celery-beat schedule for retrying payouts.

This migration creates the periodic task schedule for the
retry_failed_payouts task, which runs hourly to re-queue payouts for
completed bookings that failed, stalled, or were never started.
"""

from django.db import migrations


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for retrying payouts."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Create interval schedule: every hour
    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="hours",
    )

    PeriodicTask.objects.get_or_create(
        name="Retry Failed Payouts",
        defaults={
            "task": "payments.tasks.retry_failed_payouts",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Re-queues payout processing for completed bookings whose "
                "payout failed, stalled in PENDING_DISBURSEMENT, or never started."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name="Retry Failed Payouts").delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
