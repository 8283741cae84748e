"""Forms for the expense report editor."""

from decimal import Decimal

from django import forms
from django.forms import inlineformset_factory

from .models import ExpenseItem, ExpenseReport


class ExpenseReportForm(forms.ModelForm):
    class Meta:
        model = ExpenseReport
        fields = ["exchange_rate_usd", "exchange_rate_eur", "checked_by", "approved_by"]

    def clean_exchange_rate_usd(self):
        rate = self.cleaned_data["exchange_rate_usd"]
        if rate <= Decimal("0"):
            raise forms.ValidationError("Exchange rate must be positive.")
        return rate

    def clean_exchange_rate_eur(self):
        rate = self.cleaned_data["exchange_rate_eur"]
        if rate <= Decimal("0"):
            raise forms.ValidationError("Exchange rate must be positive.")
        return rate


class ExpenseItemForm(forms.ModelForm):
    class Meta:
        model = ExpenseItem
        fields = ["currency", "quantity", "description", "unit_price", "invoice"]

    def item_data(self) -> dict:
        """The cleaned row as passed to save_report()."""
        data = self.cleaned_data
        invoice = data.get("invoice")
        if invoice is False:
            # "Clear" was ticked
            invoice = ""
        return {
            "currency": data["currency"],
            "quantity": data["quantity"],
            "description": data["description"],
            "unit_price": data["unit_price"],
            "invoice": invoice or "",
        }


ExpenseItemFormSet = inlineformset_factory(
    ExpenseReport,
    ExpenseItem,
    form=ExpenseItemForm,
    extra=1,
    can_delete=True,
)


def formset_items(formset) -> list[dict]:
    """Rows to keep, in display order, skipping deleted and untouched extra rows."""
    items = []
    for form in formset.forms:
        if not form.has_changed() and not form.instance.pk:
            continue
        if form.cleaned_data.get("DELETE"):
            continue
        items.append(form.item_data())
    return items
