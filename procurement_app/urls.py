"""URL configuration for the procurement_app project."""

from django.urls import include, path

urlpatterns = [
    path("", include("core.urls")),
    path("api/", include("procurement.urls")),
]
