from django.db import models


DEFAULT_CATEGORY = "General"


class Category(models.Model):
    name = models.CharField(max_length=100, unique=True)
    parent = models.ForeignKey(
        "self", null=True, blank=True, on_delete=models.SET_NULL, related_name="children"
    )
    order = models.IntegerField(default=0)

    class Meta:
        db_table = "categories"
        ordering = ["order", "id"]

    def __str__(self):
        return self.name


class Tag(models.Model):
    name = models.CharField(max_length=50, unique=True)
    color = models.CharField(max_length=20)

    class Meta:
        db_table = "tags"
        ordering = ["name"]

    def __str__(self):
        return self.name


class Document(models.Model):
    """
    A wiki page.

    `body` holds the Markdown source for public documents and the encryption
    token of the source for restricted ones. The store decodes it into the
    transient `content` attribute; code outside the store should not read
    `body` directly.
    """

    title = models.CharField(max_length=255)
    body = models.TextField(blank=True, default="")
    category = models.CharField(max_length=100, default=DEFAULT_CATEGORY)
    restricted = models.BooleanField(default=False)
    is_pinned = models.BooleanField(default=False)
    tags = models.ManyToManyField(Tag, blank=True, related_name="documents", db_table="document_tags")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "documents"
        indexes = [
            models.Index(fields=["restricted", "updated_at"], name="doc_restricted_updated_idx"),
        ]

    def __str__(self):
        return f"Document {self.id}: {self.title}"
