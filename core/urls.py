from django.urls import path

from .views import health_check, readiness

urlpatterns = [
    path("healthz", health_check, name="health-check"),
    path("readyz", readiness, name="readiness"),
]
