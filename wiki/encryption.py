"""
Encryption utilities for the wiki.
Uses AES-256-GCM for restricted document content and the reference password.

Key material lives in WIKI_SECRET_DIR and is generated on first use. The
legacy AES-256-CBC helpers read data written by the old file-based wiki,
which used one fixed key/IV pair for every value.
"""

import base64
import binascii
import logging
import os
import tempfile
from pathlib import Path

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from django.conf import settings

from .exceptions import CryptoError

logger = logging.getLogger(__name__)

KEY_FILENAME = "encryption_key.txt"
IV_FILENAME = "encryption_iv.txt"

KEY_SIZE = 32  # 256 bits
IV_SIZE = 16  # CBC block size
NONCE_SIZE = 12  # 96-bit nonce for GCM
TAG_SIZE = 16


def secret_path(filename):
    """Return the path of a file inside the configured secret directory."""
    return Path(settings.WIKI_SECRET_DIR) / filename


def _load_or_create(path, size):
    """
    Read fixed-size key material from path, generating it if absent.

    New material is written to a temporary file and hard-linked into place,
    so the key file never exists half-written. If another process links its
    key first, that key wins and is returned.
    """
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            data = os.urandom(size)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.link(tmp_name, path)
        except FileExistsError:
            pass
        else:
            logger.warning("Generated new key material at %s", path)
            return data
        finally:
            os.unlink(tmp_name)

    data = path.read_bytes()
    if len(data) != size:
        raise CryptoError(
            f"Key material in {path.name} is corrupt: expected {size} bytes, got {len(data)}."
        )
    return data


def load_key():
    """Return the 32-byte site key."""
    return _load_or_create(secret_path(KEY_FILENAME), KEY_SIZE)


def load_iv():
    """Return the 16-byte IV used by the legacy CBC format."""
    return _load_or_create(secret_path(IV_FILENAME), IV_SIZE)


def encrypt_content(content, raw_key):
    """
    Encrypt content using AES-256-GCM.

    Args:
        content: String content to encrypt
        raw_key: Raw bytes key (32 bytes)

    Returns:
        bytes: nonce (12 bytes) + ciphertext + tag (16 bytes)
    """
    nonce = os.urandom(NONCE_SIZE)
    aesgcm = AESGCM(raw_key)
    return nonce + aesgcm.encrypt(nonce, content.encode("utf-8"), None)


def decrypt_content(data, raw_key):
    """
    Decrypt the output of encrypt_content.

    Raises:
        CryptoError: If the data is truncated, tampered with, or the key is wrong
    """
    if len(data) < NONCE_SIZE + TAG_SIZE:
        raise CryptoError("Invalid encrypted data: too short.")
    aesgcm = AESGCM(raw_key)
    try:
        plaintext = aesgcm.decrypt(data[:NONCE_SIZE], data[NONCE_SIZE:], None)
        return plaintext.decode("utf-8")
    except InvalidTag:
        raise CryptoError("Decryption failed: wrong key or tampered data.")
    except UnicodeDecodeError:
        raise CryptoError("Decrypted data is not valid UTF-8.")


def encrypt(plaintext):
    """Encrypt text with the site key and return a URL-safe base64 token."""
    data = encrypt_content(plaintext, load_key())
    return base64.urlsafe_b64encode(data).decode("ascii")


def decrypt(token):
    """Decrypt a token produced by encrypt()."""
    try:
        data = base64.urlsafe_b64decode(token.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError, ValueError):
        raise CryptoError("Invalid encrypted data: not base64.")
    return decrypt_content(data, load_key())


def encrypt_legacy(plaintext):
    """Encrypt text in the legacy AES-256-CBC hex format."""
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(load_key()), modes.CBC(load_iv())).encryptor()
    return (encryptor.update(padded) + encryptor.finalize()).hex()


def decrypt_legacy(hex_token):
    """
    Decrypt a legacy AES-256-CBC hex string.

    CBC is unauthenticated, so a wrong key is usually, but not always,
    detected through the padding check. Callers parsing the result should
    treat malformed plaintext as a CryptoError too.
    """
    try:
        data = bytes.fromhex(hex_token.strip())
    except ValueError:
        raise CryptoError("Invalid legacy data: not hex.")
    if not data or len(data) % IV_SIZE:
        raise CryptoError("Invalid legacy data: not a whole number of blocks.")

    decryptor = Cipher(algorithms.AES(load_key()), modes.CBC(load_iv())).decryptor()
    padded = decryptor.update(data) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except ValueError:
        # Covers bad padding and UnicodeDecodeError
        raise CryptoError("Legacy decryption failed: wrong key or corrupt data.")


def looks_legacy(token):
    """True if token is in the legacy hex format rather than base64 GCM."""
    token = token.strip()
    return bool(token) and len(token) % (IV_SIZE * 2) == 0 and all(
        c in "0123456789abcdef" for c in token
    )
