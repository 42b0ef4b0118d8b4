"""
Django admin configuration for notification models.

NotificationJob rows are written by NotificationService and the delivery
task only; the admin is read-only apart from filtering and search.
"""

from django.contrib import admin

from notifications.models import NotificationJob


@admin.register(NotificationJob)
class NotificationJobAdmin(admin.ModelAdmin):
    list_display = [
        "job_id",
        "notification_type",
        "recipient_email",
        "status",
        "sent_at",
        "created_at",
    ]
    list_filter = ["status", "notification_type"]
    search_fields = ["job_id", "recipient_email"]
    readonly_fields = [
        "id",
        "job_id",
        "notification_type",
        "recipient_email",
        "subject",
        "context",
        "status",
        "sent_at",
        "error",
        "created_at",
        "updated_at",
    ]

    def has_add_permission(self, request):
        return False
