from django import forms

from .models import ContactMessage
from .organization import OrganizationConfig, parse_address


class ContactForm(forms.ModelForm):
    class Meta:
        model = ContactMessage
        fields = ['name', 'email', 'phone', 'subject', 'message']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['subject'].required = False
        self.fields['message'].widget.attrs.setdefault('maxlength', '5000')

    def clean_subject(self):
        return self.cleaned_data.get('subject') or 'general'

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if len(name) < 2:
            raise forms.ValidationError('Please enter your name.')
        return name

    def clean_message(self):
        message = self.cleaned_data['message'].strip()
        if len(message) < 10:
            raise forms.ValidationError('Message must be at least 10 characters.')
        return message


class OrganizationConfigForm(forms.Form):
    name = forms.CharField(max_length=200)
    legal_name = forms.CharField(max_length=200, required=False)
    tagline = forms.CharField(max_length=200, required=False)
    slogan = forms.CharField(max_length=200, required=False)
    registration_number = forms.CharField(max_length=100)
    tax_exemption_ref = forms.CharField(
        max_length=100, required=False,
        help_text='Leave empty until donations are tax deductible; the receipt notice is hidden while empty.',
    )
    address = forms.CharField(widget=forms.Textarea(attrs={'rows': 4}), help_text='One line per row.')
    phone = forms.CharField(max_length=50, required=False)
    email = forms.EmailField(required=False)
    website = forms.CharField(max_length=200, required=False)
    logo_url = forms.CharField(max_length=500, required=False, help_text='Site path (/logo.png) or full URL.')

    # camelCase keys accepted from JSON clients
    ALIASES = {
        'legalName': 'legal_name',
        'registrationNumber': 'registration_number',
        'taxExemptionRef': 'tax_exemption_ref',
        'logoUrl': 'logo_url',
    }

    @classmethod
    def from_payload(cls, data):
        values = {cls.ALIASES.get(key, key): value for key, value in data.items()}
        if isinstance(values.get('address'), (list, tuple)):
            values['address'] = '\n'.join(str(line) for line in values['address'])
        return cls(values)

    def clean_address(self):
        lines = parse_address(self.cleaned_data['address'])
        if not lines:
            raise forms.ValidationError('Address is required.')
        return lines

    def to_config(self) -> OrganizationConfig:
        data = self.cleaned_data
        return OrganizationConfig(
            name=data['name'].strip(),
            legal_name=data['legal_name'].strip(),
            tagline=data['tagline'].strip(),
            slogan=data['slogan'].strip(),
            registration_number=data['registration_number'].strip(),
            tax_exemption_ref=data['tax_exemption_ref'].strip(),
            address=data['address'],
            phone=data['phone'].strip(),
            email=data['email'].strip(),
            website=data['website'].strip(),
            logo_url=data['logo_url'].strip(),
        )


class NotificationSettingsForm(forms.Form):
    notificationEmail = forms.EmailField(required=False, label='Notification email')
    emailNotificationsEnabled = forms.BooleanField(required=False, label='Send email notifications')
