"""URL configuration.

Only the Django admin is routed; the booking engine is used as a library
by the surrounding services.
"""
from django.contrib import admin  # type: ignore
from django.urls import path  # type: ignore

urlpatterns = [
    path('admin/', admin.site.urls),
]
