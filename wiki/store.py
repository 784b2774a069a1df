"""
Document storage for the wiki.

Public and restricted documents share one table. The `restricted` column
picks the bucket: public rows keep their Markdown in `body` as is, restricted
rows keep an encryption token. Moving a document between buckets is a single
row update, so it is never visible in both or neither.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from .encryption import decrypt, encrypt
from .exceptions import CryptoError, DocumentNotFound
from .models import DEFAULT_CATEGORY, Document, Tag

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"title", "content", "category", "restricted", "is_pinned", "tags"})


def _encode_body(content, restricted):
    return encrypt(content) if restricted else content


def _clean_title(title):
    title = (title or "").strip()
    if not title:
        raise ValidationError("Title is required.")
    if len(title) > Document._meta.get_field("title").max_length:
        raise ValidationError("Title is too long.")
    return title


def _resolve_tags(tag_ids):
    tag_ids = set(tag_ids)
    tags = list(Tag.objects.filter(id__in=tag_ids))
    if len(tags) != len(tag_ids):
        missing = sorted(tag_ids - {tag.id for tag in tags})
        raise ValidationError(f"Unknown tag ids: {missing}")
    return tags


class DocumentStore:
    """CRUD over wiki documents with bucket routing on `restricted`."""

    def _decode(self, document):
        """Populate document.content from body. Raises CryptoError."""
        document.unreadable = False
        if document.restricted:
            document.content = decrypt(document.body)
        else:
            document.content = document.body
        return document

    def _decode_lenient(self, document):
        """Like _decode, but marks an undecryptable document instead of raising."""
        try:
            return self._decode(document)
        except CryptoError as e:
            logger.error("Cannot decrypt restricted document %s: %s", document.id, e)
            document.content = None
            document.unreadable = True
            return document

    def _fetch(self, doc_id, for_update=False):
        queryset = Document.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(id=doc_id)
        except (Document.DoesNotExist, ValueError, TypeError):
            raise DocumentNotFound(doc_id)

    def list(self, include_restricted=False, category=None, tag=None, search=None):
        """
        Return documents, pinned first, then most recently updated.

        Restricted documents are only included when include_restricted is
        true. One undecryptable document does not fail the whole listing.
        """
        queryset = Document.objects.prefetch_related("tags").order_by("-is_pinned", "-updated_at", "-id")
        if not include_restricted:
            queryset = queryset.filter(restricted=False)
        if category:
            queryset = queryset.filter(category=category)
        if tag:
            queryset = queryset.filter(tags__name=tag).distinct()

        documents = [self._decode_lenient(document) for document in queryset]

        if search:
            needle = search.lower()
            documents = [
                d for d in documents
                if needle in d.title.lower() or (d.content is not None and needle in d.content.lower())
            ]
        return documents

    def get(self, doc_id):
        document = self._fetch(doc_id)
        return self._decode(document)

    def create(self, title, content="", category=DEFAULT_CATEGORY, restricted=False, tag_ids=()):
        title = _clean_title(title)
        content = content or ""
        category = (category or "").strip() or DEFAULT_CATEGORY
        tags = _resolve_tags(tag_ids) if tag_ids else []

        with transaction.atomic():
            document = Document.objects.create(
                title=title,
                body=_encode_body(content, restricted),
                category=category,
                restricted=restricted,
            )
            if tags:
                document.tags.set(tags)
            # auto_now_add and auto_now read the clock separately
            Document.objects.filter(id=document.id).update(updated_at=document.created_at)
            document.updated_at = document.created_at

        logger.info("Created %s document %s", "restricted" if restricted else "public", document.id)
        document.content = content
        document.unreadable = False
        return document

    def update(self, doc_id, **fields):
        """
        Merge fields onto a document and re-encode it for its bucket.

        Accepts title, content, category, restricted, is_pinned and tags
        (a list of tag ids). Changing `restricted` moves the document between
        buckets within the same row update.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {sorted(unknown)}")
        if "title" in fields:
            fields["title"] = _clean_title(fields["title"])
        tags = _resolve_tags(fields.pop("tags")) if "tags" in fields else None

        with transaction.atomic():
            document = self._fetch(doc_id, for_update=True)
            was_restricted = document.restricted

            if "content" in fields:
                content = fields.pop("content") or ""
            else:
                content = self._decode(document).content

            for name, value in fields.items():
                setattr(document, name, value)
            if not (document.category or "").strip():
                document.category = DEFAULT_CATEGORY

            document.body = _encode_body(content, document.restricted)
            document.save()
            if tags is not None:
                document.tags.set(tags)

        if was_restricted != document.restricted:
            logger.info(
                "Moved document %s to the %s bucket",
                document.id,
                "restricted" if document.restricted else "public",
            )
        document.content = content
        document.unreadable = False
        return document

    def delete(self, doc_id):
        with transaction.atomic():
            document = self._fetch(doc_id, for_update=True)
            document.delete()
        logger.info("Deleted document %s", doc_id)

    def set_tags(self, doc_id, tag_ids):
        tags = _resolve_tags(tag_ids)
        with transaction.atomic():
            document = self._fetch(doc_id, for_update=True)
            document.tags.set(tags)
            document.save(update_fields=["updated_at"])
        return self._decode_lenient(document)

    def toggle_pin(self, doc_id):
        with transaction.atomic():
            document = self._fetch(doc_id, for_update=True)
            document.is_pinned = not document.is_pinned
            document.save(update_fields=["is_pinned", "updated_at"])
        return self._decode_lenient(document)
