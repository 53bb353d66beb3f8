from django import forms
from django.conf import settings
from django.contrib.auth.forms import UserCreationForm

from .models import CustomUser, Table
from .request_types import RequestType


# ==============================================================================
# SIGN-UP FORM
# ==============================================================================
class SignUpForm(UserCreationForm):
    """Manager sign-up: the account plus the restaurant it will own."""
    restaurant_name = forms.CharField(max_length=100, label="Restaurant name")

    class Meta(UserCreationForm.Meta):
        model = CustomUser
        fields = ("username", "email")


# ==============================================================================
# TABLE FORM
# ==============================================================================
class TableForm(forms.ModelForm):
    class Meta:
        model = Table
        fields = ["label"]
        widgets = {
            "label": forms.TextInput(attrs={"placeholder": "Enter new table label (e.g., '14' or 'A3')"}),
        }

    def clean_label(self):
        label = self.cleaned_data["label"].strip()
        if not label:
            raise forms.ValidationError("Table label is required.")
        if "/" in label:
            raise forms.ValidationError("Table label cannot contain '/'.")
        return label


# ==============================================================================
# SERVICE REQUEST FORM (customer page)
# ==============================================================================
class ServiceRequestForm(forms.Form):
    type = forms.ChoiceField(choices=RequestType.choices)
    photo = forms.ImageField(required=False)

    def clean_photo(self):
        photo = self.cleaned_data.get("photo")
        if photo:
            max_bytes = getattr(settings, "MAX_PHOTO_UPLOAD_MB", 5) * 1024 * 1024
            if photo.size > max_bytes:
                raise forms.ValidationError("Photo is too large.")
        return photo
