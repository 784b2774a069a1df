"""
Django management command to import documents from the old file-based wiki.

The old layout kept one JSON file per document: plain JSON under `wiki/`
and legacy AES-CBC hex ciphertext of the JSON under `secrets/`. Documents
keep their bucket and get new ids. The key and IV files of the old
deployment must be in WIKI_SECRET_DIR.
"""

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime

from wiki.encryption import decrypt_legacy
from wiki.exceptions import CryptoError
from wiki.models import DEFAULT_CATEGORY, Document
from wiki.store import DocumentStore

BUCKETS = (("wiki", False), ("secrets", True))


def _parse_timestamp(value):
    try:
        return parse_datetime(str(value or ""))
    except ValueError:
        return None


def load_legacy_file(path, restricted):
    """Parse one legacy document file. Raises CryptoError or ValueError."""
    raw = path.read_text(encoding="utf-8").strip()
    if restricted:
        raw = decrypt_legacy(raw)
    try:
        record = json.loads(raw)
    except json.JSONDecodeError as e:
        if restricted:
            # CBC has no integrity check; garbage after a key change lands here
            raise CryptoError(f"Decrypted data is not a document: {e}")
        raise ValueError(f"Invalid JSON: {e}")
    if not isinstance(record, dict):
        raise ValueError("Document file does not hold a JSON object.")
    return record


class Command(BaseCommand):
    help = "Import documents from the legacy wiki/ and secrets/ JSON directories"

    def add_arguments(self, parser):
        parser.add_argument("source", type=Path, help="Directory containing wiki/ and secrets/")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Parse and decrypt every file without writing anything",
        )

    def handle(self, *args, **options):
        source = options["source"]
        if not source.is_dir():
            raise CommandError(f"{source} is not a directory.")

        store = DocumentStore()
        imported = 0
        failures = []

        for dirname, restricted in BUCKETS:
            bucket = source / dirname
            if not bucket.is_dir():
                continue
            for path in sorted(bucket.glob("*.json")):
                try:
                    record = load_legacy_file(path, restricted)
                except (CryptoError, ValueError, OSError) as e:
                    failures.append(path)
                    self.stderr.write(f"Skipping {path}: {e}")
                    continue

                title = str(record.get("title") or path.stem)
                if options["dry_run"]:
                    self.stdout.write(f"Would import {path.name} as {title!r}")
                    imported += 1
                    continue

                document = store.create(
                    title=title,
                    content=str(record.get("content") or ""),
                    category=str(record.get("category") or DEFAULT_CATEGORY),
                    restricted=restricted,
                )
                created = _parse_timestamp(record.get("createdAt"))
                updated = _parse_timestamp(record.get("updatedAt"))
                if created or updated:
                    Document.objects.filter(id=document.id).update(
                        created_at=created or document.created_at,
                        updated_at=updated or created or document.updated_at,
                    )
                imported += 1
                self.stdout.write(f"Imported {path.name} as document {document.id}")

        message = f"Imported {imported} documents"
        if options["dry_run"]:
            message += " (dry run)"
        self.stdout.write(self.style.SUCCESS(message))

        if failures:
            raise CommandError(f"{len(failures)} files could not be imported.")
