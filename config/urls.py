"""
URL configuration for the intranet wiki project.
"""

from django.urls import include, path

urlpatterns = [
    path("api/wiki/", include("wiki.urls")),
]
