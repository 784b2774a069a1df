"""
Serializers for the wiki API.
"""

from rest_framework import serializers

from .models import DEFAULT_CATEGORY, Category, Tag


class TagSerializer(serializers.ModelSerializer):
    """Serializer for tags, used both for responses and tag creation."""

    class Meta:
        model = Tag
        fields = ["id", "name", "color"]


class CategorySerializer(serializers.ModelSerializer):
    """Serializer for categories. document_count is annotated by the view."""

    document_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Category
        fields = ["id", "name", "parent", "order", "document_count"]
        extra_kwargs = {"order": {"required": False}}


class DocumentSerializer(serializers.Serializer):
    """
    Serializer for document responses.

    Restricted content is blanked unless the serializer context says the
    gate is unlocked.
    """

    id = serializers.IntegerField()
    title = serializers.CharField()
    content = serializers.SerializerMethodField()
    category = serializers.CharField()
    restricted = serializers.BooleanField()
    is_pinned = serializers.BooleanField()
    locked = serializers.SerializerMethodField()
    unreadable = serializers.SerializerMethodField()
    tags = TagSerializer(many=True, read_only=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()

    def _hidden(self, obj):
        return obj.restricted and not self.context.get("unlocked", False)

    def get_content(self, obj):
        if self._hidden(obj):
            return None
        return getattr(obj, "content", None)

    def get_locked(self, obj):
        return self._hidden(obj)

    def get_unreadable(self, obj):
        return getattr(obj, "unreadable", False)


class StrictFieldsMixin:
    """Reject request keys the serializer does not declare."""

    def validate(self, attrs):
        unknown = set(self.initial_data) - set(self.fields)
        if unknown:
            raise serializers.ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        return super().validate(attrs)


class DocumentCreateSerializer(StrictFieldsMixin, serializers.Serializer):
    """Serializer for document creation requests."""

    title = serializers.CharField(max_length=255)
    content = serializers.CharField(required=False, allow_blank=True, default="", trim_whitespace=False)
    category = serializers.CharField(required=False, allow_blank=True, default=DEFAULT_CATEGORY, max_length=100)
    restricted = serializers.BooleanField(required=False, default=False)
    tag_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)


class DocumentUpdateSerializer(StrictFieldsMixin, serializers.Serializer):
    """Serializer for partial document updates. Only these keys may change."""

    title = serializers.CharField(required=False, max_length=255)
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    category = serializers.CharField(required=False, allow_blank=True, max_length=100)
    restricted = serializers.BooleanField(required=False)
    is_pinned = serializers.BooleanField(required=False)
    tag_ids = serializers.ListField(child=serializers.IntegerField(), required=False)

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if not attrs:
            raise serializers.ValidationError("No fields to update.")
        return attrs


class DocumentTagsSerializer(serializers.Serializer):
    """Serializer for replacing a document's tags."""

    tag_ids = serializers.ListField(child=serializers.IntegerField())


class UnlockSerializer(serializers.Serializer):
    """Serializer for access gate unlock requests."""

    password = serializers.CharField(trim_whitespace=False)


class GateStatusSerializer(serializers.Serializer):
    """Serializer for access gate state responses."""

    unlocked = serializers.BooleanField()

