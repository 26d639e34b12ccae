import csv
from datetime import datetime

from django.contrib import admin
from django.http import HttpResponse
from django.utils import timezone

from .models import AdminNotification, ContactMessage, Form, FormSubmission, Project, SiteSetting


class RecentDateFilter(admin.SimpleListFilter):
    title = 'Period'
    parameter_name = 'period'
    date_field = 'created'

    def lookups(self, request, model_admin):
        return [
            ('1d', 'Last 24 hours'),
            ('7d', 'Last 7 days'),
            ('30d', 'Last 30 days'),
        ]

    def queryset(self, request, queryset):
        days = {'1d': 1, '7d': 7, '30d': 30}.get(self.value())
        if not days:
            return queryset
        since = timezone.now() - timezone.timedelta(days=days)
        return queryset.filter(**{f"{self.date_field}__gte": since})


class SubmissionDateFilter(RecentDateFilter):
    date_field = 'created_at'


@admin.register(ContactMessage)
class ContactAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'subject', 'created', 'handled')
    list_filter = ('handled', 'subject', RecentDateFilter)
    search_fields = ('name', 'email', 'message')
    actions = ['export_messages_csv', 'mark_handled']

    def export_messages_csv(self, request, queryset):
        """Export the selected messages as CSV."""
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="contact_messages_{timestamp}.csv"'
        writer = csv.writer(response)
        writer.writerow(['ID', 'Name', 'Email', 'Phone', 'Subject', 'Message', 'Created', 'Handled'])
        for msg in queryset:
            writer.writerow([
                msg.id,
                msg.name,
                msg.email,
                msg.phone,
                msg.get_subject_display(),
                msg.message.replace('\n', ' ').strip(),
                timezone.localtime(msg.created).strftime('%Y-%m-%d %H:%M:%S'),
                'yes' if msg.handled else 'no',
            ])
        return response
    export_messages_csv.short_description = 'Export selected messages to CSV'

    def mark_handled(self, request, queryset):
        updated = queryset.update(handled=True)
        self.message_user(request, f"{updated} message(s) marked as handled.")
    mark_handled.short_description = 'Mark as handled'


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('title', 'is_published', 'donation_enabled', 'donation_goal', 'donation_raised')
    list_filter = ('is_published', 'donation_enabled')
    search_fields = ('title', 'title_ms', 'description')
    prepopulated_fields = {'slug': ('title',)}
    readonly_fields = ('donation_raised', 'created_at', 'updated_at')


class FormSubmissionInline(admin.TabularInline):
    model = FormSubmission
    extra = 0
    can_delete = False
    fields = ('created_at', 'data', 'source_url', 'source_content_title')
    readonly_fields = fields


@admin.register(Form)
class FormAdmin(admin.ModelAdmin):
    list_display = ('title', 'name', 'is_active', 'send_email_notification', 'submission_count')
    list_filter = ('is_active', 'send_email_notification')
    search_fields = ('title', 'name')
    prepopulated_fields = {'name': ('title',)}
    inlines = [FormSubmissionInline]

    def submission_count(self, obj):
        return obj.submissions.count()
    submission_count.short_description = 'Submissions'


@admin.register(FormSubmission)
class FormSubmissionAdmin(admin.ModelAdmin):
    list_display = ('form', 'created_at', 'source_content_title')
    list_filter = ('form', SubmissionDateFilter)
    readonly_fields = ('form', 'data', 'source_url', 'source_content_title', 'created_at')


@admin.register(AdminNotification)
class AdminNotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'type', 'priority', 'is_read', 'is_dismissed', 'created_at')
    list_filter = ('type', 'priority', 'is_read', 'is_dismissed')
    search_fields = ('title', 'message')
    actions = ['mark_read']

    def mark_read(self, request, queryset):
        updated = queryset.filter(is_read=False).update(is_read=True, read_at=timezone.now())
        self.message_user(request, f"{updated} notification(s) marked as read.")
    mark_read.short_description = 'Mark as read'


@admin.register(SiteSetting)
class SiteSettingAdmin(admin.ModelAdmin):
    list_display = ('key', 'updated_at')
    search_fields = ('key',)
