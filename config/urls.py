"""
URL configuration for the fiscal submission service.
"""

from django.urls import include, path

urlpatterns = [
    path("api/einvoicing/", include("apps.einvoicing.urls")),
]
