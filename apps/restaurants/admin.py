from django import forms
from django.contrib import admin

from apps.restaurants.application.services.crypto import CredentialCrypto
from apps.restaurants.domain.policies import normalize_secret_key

from .models import MenuItem, Restaurant, RestaurantPaymentCredentials


class MenuItemInline(admin.TabularInline):
    model = MenuItem
    extra = 0
    fields = ("name", "price", "is_available")


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "owner", "phone", "is_active", "created_at")
    search_fields = ("name", "owner__username", "owner__email", "phone")
    list_filter = ("is_active",)
    list_select_related = ("owner",)
    inlines = [MenuItemInline]


class RestaurantPaymentCredentialsAdminForm(forms.ModelForm):
    secret_key = forms.CharField(
        required=False,
        widget=forms.PasswordInput(render_value=False),
        help_text="Stored encrypted. Leave blank to keep the current key.",
        label="Secret key",
    )

    class Meta:
        model = RestaurantPaymentCredentials
        fields = ("restaurant", "public_key", "secret_key")

    def clean_secret_key(self):
        raw = (self.cleaned_data.get("secret_key") or "").strip()
        if not raw:
            return ""
        try:
            return normalize_secret_key(raw)
        except ValueError as exc:
            raise forms.ValidationError(str(exc)) from exc


@admin.register(RestaurantPaymentCredentials)
class RestaurantPaymentCredentialsAdmin(admin.ModelAdmin):
    form = RestaurantPaymentCredentialsAdminForm
    list_display = ("restaurant", "public_key", "configured", "updated_at")
    search_fields = ("restaurant__name",)
    list_select_related = ("restaurant",)

    @admin.display(boolean=True)
    def configured(self, obj):
        return obj.is_configured

    def has_module_permission(self, request):
        return bool(request.user and request.user.is_superuser)

    def has_view_permission(self, request, obj=None):
        return bool(request.user and request.user.is_superuser)

    def save_model(self, request, obj, form, change):
        secret = form.cleaned_data.get("secret_key") or ""
        if secret:
            obj.secret_key_encrypted = CredentialCrypto.encrypt_json({"secret_key": secret})
        super().save_model(request, obj, form, change)
