"""
Django app configuration for e-Invoicing app
"""

from django.apps import AppConfig


class EInvoicingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.einvoicing"
    verbose_name = "e-Invoicing"
