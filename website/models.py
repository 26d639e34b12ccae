from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class SiteSetting(models.Model):
    """Generic key/value row backing site-wide configuration (JSON values)."""
    key = models.CharField(max_length=100, unique=True)
    value = models.JSONField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('key',)
        verbose_name = 'Site setting'
        verbose_name_plural = 'Site settings'

    def __str__(self):
        return self.key


class Project(models.Model):
    slug = models.SlugField(max_length=220, unique=True, blank=True)
    title = models.CharField(max_length=200)
    title_ms = models.CharField("Title (Bahasa Melayu)", max_length=200, blank=True)
    description = models.TextField(blank=True)
    is_published = models.BooleanField(default=False)
    donation_enabled = models.BooleanField(default=False)
    donation_goal = models.PositiveIntegerField(null=True, blank=True, help_text="Target in minor units (sen)")
    donation_raised = models.PositiveIntegerField(default=0, help_text="Raised in minor units (sen)")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('-created_at',)
        verbose_name = 'Project'
        verbose_name_plural = 'Projects'

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug and self.title:
            base = slugify(self.title)[:200]
            candidate = base
            i = 1
            while Project.objects.filter(slug=candidate).exclude(pk=self.pk).exists():
                candidate = f"{base}-{i}"[:220]
                i += 1
            self.slug = candidate
        super().save(*args, **kwargs)

    def localized_title(self, locale='en'):
        if locale == 'ms' and self.title_ms:
            return self.title_ms
        return self.title


class ContactMessage(models.Model):
    SUBJECT_CHOICES = [
        ("general", "General Inquiry"),
        ("donation", "Donation Question"),
        ("volunteer", "Volunteering"),
        ("partnership", "Partnership Opportunity"),
        ("media", "Media Inquiry"),
        ("other", "Other"),
    ]
    name = models.CharField(max_length=100)
    email = models.EmailField(max_length=255)
    phone = models.CharField(max_length=20, blank=True)
    subject = models.CharField(max_length=50, choices=SUBJECT_CHOICES, default="general")
    message = models.TextField(max_length=5000)
    handled = models.BooleanField(default=False)
    created = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('-created',)
        verbose_name = 'Contact message'
        verbose_name_plural = 'Contact messages'

    def __str__(self):
        return f"Message from {self.name} <{self.email}>"


class Form(models.Model):
    """Admin-built form. ``fields`` is a list of {id, type, label, options}."""
    name = models.SlugField(max_length=120, unique=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    fields = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    send_email_notification = models.BooleanField(default=True)
    notification_email = models.EmailField(blank=True, help_text="Overrides the site notification address")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('title',)
        verbose_name = 'Form'
        verbose_name_plural = 'Forms'

    def __str__(self):
        return self.title


class FormSubmission(models.Model):
    form = models.ForeignKey(Form, on_delete=models.CASCADE, related_name='submissions')
    data = models.JSONField(default=dict)
    source_url = models.URLField(max_length=500, blank=True)
    source_content_title = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('-created_at',)
        verbose_name = 'Form submission'
        verbose_name_plural = 'Form submissions'

    def __str__(self):
        return f"{self.form.title} ({self.created_at:%Y-%m-%d %H:%M})"


class AdminNotificationQuerySet(models.QuerySet):
    def active(self):
        now = timezone.now()
        return self.filter(is_dismissed=False).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        )

    def unread(self):
        return self.active().filter(is_read=False)


class AdminNotification(models.Model):
    """Event shown in the dashboard bell; polled by the admin UI."""

    class Type(models.TextChoices):
        CONTACT_MESSAGE = 'contact_message', 'Contact message'
        FORM_SUBMISSION = 'form_submission', 'Form submission'
        DONATION_RECEIVED = 'donation_received', 'Donation received'
        SYSTEM = 'system', 'System'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        NORMAL = 'normal', 'Normal'
        HIGH = 'high', 'High'
        URGENT = 'urgent', 'Urgent'

    type = models.CharField(max_length=30, choices=Type.choices)
    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.NORMAL)
    title = models.CharField(max_length=200)
    message = models.TextField()
    related_type = models.CharField(max_length=50, blank=True)
    related_id = models.CharField(max_length=64, blank=True)
    related_url = models.CharField(max_length=300, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    is_dismissed = models.BooleanField(default=False)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    read_at = models.DateTimeField(null=True, blank=True)

    objects = AdminNotificationQuerySet.as_manager()

    class Meta:
        ordering = ('-created_at', '-id')
        verbose_name = 'Admin notification'
        verbose_name_plural = 'Admin notifications'

    def __str__(self):
        return f"[{self.get_type_display()}] {self.title}"

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])

    def as_dict(self):
        return {
            'id': self.pk,
            'type': self.type,
            'priority': self.priority,
            'title': self.title,
            'message': self.message,
            'relatedType': self.related_type or None,
            'relatedId': self.related_id or None,
            'relatedUrl': self.related_url or None,
            'metadata': self.metadata,
            'isRead': self.is_read,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'readAt': self.read_at.isoformat() if self.read_at else None,
        }
