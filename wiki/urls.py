"""
URL configuration for the wiki app.
"""

from django.urls import path
from .views import (
    CategoryDetailView,
    CategoryListView,
    DocumentDetailView,
    DocumentListView,
    DocumentPinView,
    DocumentTagsView,
    GateView,
    HealthCheckView,
    TagDetailView,
    TagListView,
)

urlpatterns = [
    path("health", HealthCheckView.as_view(), name="health-check"),
    path("gate", GateView.as_view(), name="gate"),
    path("documents", DocumentListView.as_view(), name="document-list"),
    path("documents/<int:doc_id>", DocumentDetailView.as_view(), name="document-detail"),
    path("documents/<int:doc_id>/pin", DocumentPinView.as_view(), name="document-pin"),
    path("documents/<int:doc_id>/tags", DocumentTagsView.as_view(), name="document-tags"),
    path("categories", CategoryListView.as_view(), name="category-list"),
    path("categories/<int:category_id>", CategoryDetailView.as_view(), name="category-detail"),
    path("tags", TagListView.as_view(), name="tag-list"),
    path("tags/<int:tag_id>", TagDetailView.as_view(), name="tag-detail"),
]
