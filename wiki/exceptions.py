"""Custom exceptions for the wiki domain."""


class WikiError(Exception):
    """Base exception for wiki operations."""


class DocumentNotFound(WikiError):
    """No document with the requested id exists."""

    def __init__(self, doc_id):
        super().__init__(f"Document {doc_id} not found.")
        self.doc_id = doc_id


class CryptoError(WikiError):
    """Encryption or decryption failed (corrupt data or key material)."""


class GateNotConfigured(WikiError):
    """The reference unlock password has not been set."""
