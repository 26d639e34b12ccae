from django.contrib import admin, messages

from .models import Donation, DonationLog
from .money import format_amount, to_major
from .services import expire_donation, issue_receipt


class DonationLogInline(admin.TabularInline):
    model = DonationLog
    extra = 0
    can_delete = False
    fields = ('created_at', 'event_type', 'event_data', 'ip_address')
    readonly_fields = fields
    ordering = ('created_at', 'id')


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ('payment_reference', 'donor_name', 'display_amount', 'payment_status',
                    'receipt_number', 'receipt_sent_at', 'created_at')
    list_filter = ('payment_status', 'payment_method', 'created_at', 'project')
    search_fields = ('payment_reference', 'receipt_number', 'donor_name', 'donor_email', 'transaction_id')
    date_hierarchy = 'created_at'
    readonly_fields = ('payment_reference', 'receipt_number', 'receipt_sent_at', 'completed_at',
                       'created_at', 'updated_at')
    fieldsets = (
        (None, {'fields': ('payment_reference', 'payment_status', 'amount', 'currency', 'project')}),
        ('Donor', {'fields': ('donor_name', 'donor_email', 'donor_phone', 'is_anonymous', 'message')}),
        ('Gateway', {'fields': ('payment_method', 'bill_code', 'transaction_id', 'failure_reason')}),
        ('Receipt', {'fields': ('receipt_number', 'receipt_sent_at', 'completed_at')}),
        ('Meta', {'fields': ('created_at', 'updated_at')}),
    )
    inlines = [DonationLogInline]
    actions = ['resend_receipts', 'mark_expired']

    def display_amount(self, obj):
        return format_amount(to_major(obj.amount), obj.currency)
    display_amount.short_description = 'Amount'

    def resend_receipts(self, request, queryset):
        """Assign missing numbers and (re)send the receipt email."""
        sent = failed = skipped = 0
        for donation in queryset.filter(payment_status=Donation.Status.COMPLETED):
            result = issue_receipt(donation, request=request)
            if result is None:
                skipped += 1
            elif result.success:
                sent += 1
            else:
                failed += 1
        level = messages.WARNING if failed else messages.SUCCESS
        self.message_user(request, f"Receipts sent: {sent}, failed: {failed}, skipped: {skipped}.", level=level)
    resend_receipts.short_description = 'Send receipt email for selected donations'

    def mark_expired(self, request, queryset):
        """Close pending or failed donations whose payment never arrived."""
        stale = queryset.filter(payment_status__in=[Donation.Status.PENDING, Donation.Status.FAILED])
        count = 0
        for donation in stale:
            expire_donation(donation, marked_by=request.user.get_username(), request=request)
            count += 1
        self.message_user(request, f"{count} donation(s) marked as expired.", level=messages.SUCCESS)
    mark_expired.short_description = 'Mark selected pending donations as expired'
