# marketplace/forms.py

from decimal import Decimal

from django import forms

from .models import DisasterReport, FoodItem


class DonationForm(forms.Form):
    """
    Top-level fields of a new donation. Food items are validated one by one
    with FoodItemForm.
    """
    ngo_id = forms.IntegerField(min_value=1, label='NGO')
    declared_value = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'), label='Total value')
    pickup_address = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 3}))


class FoodItemForm(forms.Form):
    name = forms.CharField(max_length=255)
    quantity = forms.DecimalField(max_digits=11, decimal_places=3, min_value=Decimal('0.001'))
    unit = forms.ChoiceField(choices=FoodItem.Unit.choices)

    def __init__(self, data=None, *args, **kwargs):
        if data is not None and isinstance(data.get('unit'), str):
            data = dict(data, unit=data['unit'].strip().lower())
        super().__init__(data, *args, **kwargs)


class DisasterReportForm(forms.ModelForm):
    class Meta:
        model = DisasterReport
        fields = ['title', 'description', 'location', 'estimated_people', 'urgency', 'contact_number']
        labels = {
            'estimated_people': 'Estimated People Affected',
        }
