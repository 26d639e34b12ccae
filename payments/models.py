from django.db import models


class Donation(models.Model):

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"
        EXPIRED = "expired", "Expired"

    donor_name = models.CharField(max_length=100, blank=True)
    donor_email = models.EmailField(max_length=255, blank=True)
    donor_phone = models.CharField(max_length=20, blank=True)
    amount = models.PositiveIntegerField(help_text="Amount in minor units (sen)")
    currency = models.CharField(max_length=8, default="MYR")
    project = models.ForeignKey(
        'website.Project',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='donations',
    )
    message = models.TextField(blank=True)
    is_anonymous = models.BooleanField(default=False)
    payment_status = models.CharField(max_length=12, choices=Status.choices, default=Status.PENDING)
    payment_reference = models.CharField(max_length=64, unique=True)
    bill_code = models.CharField(max_length=64, blank=True)
    transaction_id = models.CharField(max_length=64, blank=True)
    payment_method = models.CharField(max_length=16, default="fpx")
    receipt_number = models.CharField(max_length=32, unique=True, null=True, blank=True)
    receipt_sent_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('-created_at',)

    def __str__(self):
        return f"Donation {self.payment_reference} - {self.amount} {self.currency} - {self.payment_status}"

    @property
    def is_completed(self):
        return self.payment_status == self.Status.COMPLETED


class DonationLog(models.Model):
    """Audit trail of what happened to a donation (callbacks, receipts)."""
    donation = models.ForeignKey(Donation, on_delete=models.CASCADE, related_name='logs')
    event_type = models.CharField(max_length=40)
    event_data = models.JSONField(default=dict, blank=True)
    ip_address = models.CharField(max_length=64, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('created_at', 'id')

    def __str__(self):
        return f"{self.donation.payment_reference}: {self.event_type}"
