"""
API views for the wiki backend.
"""

import logging

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import Count
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    NotFound,
    ParseError,
    PermissionDenied,
    Throttled,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import CryptoError, DocumentNotFound, GateNotConfigured
from .gate import AccessGate
from .models import DEFAULT_CATEGORY, Category, Document, Tag
from .serializers import (
    CategorySerializer,
    DocumentCreateSerializer,
    DocumentSerializer,
    DocumentTagsSerializer,
    DocumentUpdateSerializer,
    GateStatusSerializer,
    TagSerializer,
    UnlockSerializer,
)
from .store import DocumentStore
from .throttling import MonitoringThrottle, UnlockThrottle

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}


class Locked(PermissionDenied):
    default_detail = "Wiki is locked. Unlock it first."
    default_code = "locked"


class InvalidPassword(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Incorrect password."
    default_code = "invalid_password"


class PayloadTooLarge(APIException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = "Content exceeds the size limit."
    default_code = "payload_too_large"


def _error_message(exc):
    """Flatten DRF/Django validation details into one readable line."""
    detail = getattr(exc, "detail", None)
    if detail is None:
        messages = getattr(exc, "messages", None)
        return " ".join(messages) if messages else str(exc)
    if isinstance(detail, dict):
        parts = []
        for field, errors in detail.items():
            errors = errors if isinstance(errors, list) else [errors]
            text = " ".join(str(e) for e in errors)
            parts.append(text if field == "non_field_errors" else f"{field}: {text}")
        return " ".join(parts)
    if isinstance(detail, list):
        return " ".join(str(e) for e in detail)
    return str(detail)


def custom_exception_handler(exc, context):
    """Custom exception handler for consistent error responses."""
    from rest_framework.views import exception_handler

    if isinstance(exc, DocumentNotFound):
        exc = NotFound(str(exc))
    elif isinstance(exc, DjangoValidationError):
        exc = ValidationError(exc.messages)

    response = exception_handler(exc, context)

    if response is not None:
        error_code = "error"
        message = _error_message(exc)

        if isinstance(exc, Throttled):
            error_code = "rate_limited"
            message = "Too many requests. Please try again later."
            # Preserve the Retry-After header set by DRF
        elif isinstance(exc, NotFound):
            error_code = "not_found"
        elif isinstance(exc, Locked):
            error_code = "locked"
        elif isinstance(exc, PermissionDenied):
            error_code = "forbidden"
        elif isinstance(exc, (ParseError, ValidationError)):
            error_code = "bad_request"
        elif isinstance(exc, (InvalidPassword, PayloadTooLarge)):
            error_code = exc.default_code

        response.data = {"error": error_code, "message": message}
        return response

    if isinstance(exc, CryptoError):
        logger.error("Crypto failure: %s", exc)
        return Response(
            {"error": "crypto_error", "message": str(exc)},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    if isinstance(exc, GateNotConfigured):
        logger.error("Access gate is not configured: %s", exc)
        return Response(
            {"error": "not_configured", "message": str(exc)},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    if isinstance(exc, DatabaseError):
        logger.exception("Storage failure")
        return Response(
            {"error": "storage_error", "message": "Storage operation failed."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return None


def _flag(value):
    return value is not None and value.strip().lower() in TRUE_VALUES


class WikiAPIView(APIView):
    """Base view giving access to the session gate and the document store."""

    store = DocumentStore()

    def gate(self, request):
        return AccessGate(request.session)

    def require_unlocked(self, request):
        if not self.gate(request).is_unlocked():
            raise Locked()

    def serialize(self, request, documents, many=False):
        context = {"unlocked": self.gate(request).is_unlocked()}
        return DocumentSerializer(documents, many=many, context=context).data

    def check_content_size(self, content):
        if content is not None and len(content.encode("utf-8")) > settings.WIKI_MAX_CONTENT_SIZE:
            raise PayloadTooLarge()


class HealthCheckView(APIView):
    """Health check endpoint."""

    throttle_classes = [MonitoringThrottle]

    def get(self, request):
        return Response({"status": "ok"}, status=status.HTTP_200_OK)


class GateView(WikiAPIView):
    """Read, unlock, or lock the access gate for this session."""

    def get_throttles(self):
        if self.request.method == "POST":
            return [UnlockThrottle()]
        return []

    def get(self, request):
        data = GateStatusSerializer({"unlocked": self.gate(request).is_unlocked()}).data
        return Response(data, status=status.HTTP_200_OK)

    def post(self, request):
        serializer = UnlockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        gate = self.gate(request)
        if not gate.submit_password(serializer.validated_data["password"]):
            raise InvalidPassword()

        # New session key on privilege change
        request.session.cycle_key()
        return Response(GateStatusSerializer({"unlocked": True}).data, status=status.HTTP_200_OK)

    def delete(self, request):
        self.gate(request).lock()
        request.session.cycle_key()
        return Response(GateStatusSerializer({"unlocked": False}).data, status=status.HTTP_200_OK)


class DocumentListView(WikiAPIView):
    """List or create documents."""

    def get(self, request):
        unlocked = self.gate(request).is_unlocked()
        include_param = request.query_params.get("include_restricted")
        include_restricted = unlocked if include_param is None else _flag(include_param)
        if include_restricted and not unlocked:
            raise Locked("Restricted documents require an unlocked wiki.")

        documents = self.store.list(
            include_restricted=include_restricted,
            category=request.query_params.get("category"),
            tag=request.query_params.get("tag"),
            search=request.query_params.get("search"),
        )
        return Response(self.serialize(request, documents, many=True), status=status.HTTP_200_OK)

    def post(self, request):
        self.require_unlocked(request)
        serializer = DocumentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        self.check_content_size(data["content"])

        document = self.store.create(
            title=data["title"],
            content=data["content"],
            category=data["category"],
            restricted=data["restricted"],
            tag_ids=data["tag_ids"],
        )
        return Response(self.serialize(request, document), status=status.HTTP_201_CREATED)


class DocumentDetailView(WikiAPIView):
    """Read, update, or delete a document."""

    def get(self, request, doc_id):
        """
        Read a document.

        A restricted document read while locked is returned without its
        content and is not decrypted at all.
        """
        if self.gate(request).is_unlocked():
            document = self.store.get(doc_id)
        else:
            try:
                document = Document.objects.get(id=doc_id)
            except Document.DoesNotExist:
                raise DocumentNotFound(doc_id)
            if not document.restricted:
                document.content = document.body
        return Response(self.serialize(request, document), status=status.HTTP_200_OK)

    def patch(self, request, doc_id):
        """Merge the given fields onto the document."""
        self.require_unlocked(request)
        serializer = DocumentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        self.check_content_size(fields.get("content"))
        if "tag_ids" in fields:
            fields["tags"] = fields.pop("tag_ids")

        document = self.store.update(doc_id, **fields)
        return Response(self.serialize(request, document), status=status.HTTP_200_OK)

    put = patch

    def delete(self, request, doc_id):
        self.require_unlocked(request)
        self.store.delete(doc_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DocumentPinView(WikiAPIView):
    """Toggle the pinned flag of a document."""

    def post(self, request, doc_id):
        self.require_unlocked(request)
        document = self.store.toggle_pin(doc_id)
        return Response(self.serialize(request, document), status=status.HTTP_200_OK)


class DocumentTagsView(WikiAPIView):
    """Replace the tags of a document."""

    def put(self, request, doc_id):
        self.require_unlocked(request)
        serializer = DocumentTagsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        document = self.store.set_tags(doc_id, serializer.validated_data["tag_ids"])
        return Response(self.serialize(request, document), status=status.HTTP_200_OK)


class CategoryListView(WikiAPIView):
    """List or create categories."""

    def get(self, request):
        if not Category.objects.exists():
            Category.objects.get_or_create(name=DEFAULT_CATEGORY, defaults={"order": 0})

        counts = dict(
            Document.objects.values("category").annotate(n=Count("id")).values_list("category", "n")
        )
        categories = list(Category.objects.all())
        for category in categories:
            category.document_count = counts.get(category.name, 0)
        return Response(CategorySerializer(categories, many=True).data, status=status.HTTP_200_OK)

    def post(self, request):
        self.require_unlocked(request)
        serializer = CategorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            extra = {}
            if "order" not in serializer.validated_data:
                last = Category.objects.order_by("-order").first()
                extra["order"] = (last.order if last else 0) + 1
            category = serializer.save(**extra)

        category.document_count = 0
        logger.info("Created category %s", category.name)
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)


class CategoryDetailView(WikiAPIView):
    """Rename, reorder, or delete a category."""

    def _get_category(self, category_id):
        try:
            return Category.objects.get(id=category_id)
        except Category.DoesNotExist:
            raise NotFound("Category not found.")

    def patch(self, request, category_id):
        self.require_unlocked(request)
        category = self._get_category(category_id)
        old_name = category.name
        serializer = CategorySerializer(category, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            category = serializer.save()
            if category.name != old_name:
                # Documents reference categories by name
                Document.objects.filter(category=old_name).update(
                    category=category.name, updated_at=timezone.now()
                )

        category.document_count = Document.objects.filter(category=category.name).count()
        return Response(CategorySerializer(category).data, status=status.HTTP_200_OK)

    def delete(self, request, category_id):
        """Delete a category, moving its documents to the default category."""
        self.require_unlocked(request)
        category = self._get_category(category_id)
        if category.name == DEFAULT_CATEGORY:
            raise ValidationError(f"The {DEFAULT_CATEGORY} category cannot be deleted.")

        with transaction.atomic():
            moved = Document.objects.filter(category=category.name).update(
                category=DEFAULT_CATEGORY, updated_at=timezone.now()
            )
            Category.objects.get_or_create(name=DEFAULT_CATEGORY, defaults={"order": 0})
            category.delete()

        logger.info("Deleted category %s, moved %d documents to %s", category.name, moved, DEFAULT_CATEGORY)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TagListView(WikiAPIView):
    """List or create tags."""

    def get(self, request):
        return Response(TagSerializer(Tag.objects.all(), many=True).data, status=status.HTTP_200_OK)

    def post(self, request):
        self.require_unlocked(request)
        serializer = TagSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tag = serializer.save()
        return Response(TagSerializer(tag).data, status=status.HTTP_201_CREATED)


class TagDetailView(WikiAPIView):
    """Delete a tag. It is removed from every document."""

    def delete(self, request, tag_id):
        self.require_unlocked(request)
        deleted, _ = Tag.objects.filter(id=tag_id).delete()
        if not deleted:
            raise NotFound("Tag not found.")
        return Response(status=status.HTTP_204_NO_CONTENT)
