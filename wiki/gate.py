"""
Access gate for the wiki.

The gate decides whether a client may see restricted content and edit
documents. It does not protect data at rest: restricted content is
encrypted by the store regardless of the gate state. The unlocked flag is
kept in the client's session, so every client starts locked.
"""

import hmac
import logging

from .encryption import decrypt, decrypt_legacy, encrypt, looks_legacy, secret_path
from .exceptions import GateNotConfigured

logger = logging.getLogger(__name__)

PASSWORD_FILENAME = "encrypted_password.txt"
SESSION_KEY = "wiki_unlocked"


def password_path():
    return secret_path(PASSWORD_FILENAME)


def set_reference_password(password):
    """Encrypt password and store it as the site unlock password."""
    if not password:
        raise ValueError("Password must not be empty.")
    path = password_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(encrypt(password), encoding="utf-8")
    path.chmod(0o600)
    logger.info("Reference unlock password updated")


def load_reference_password():
    """
    Decrypt the stored unlock password.

    Files written by the old wiki hold hex AES-CBC output and are still
    accepted.
    """
    path = password_path()
    if not path.exists():
        raise GateNotConfigured("Unlock password has not been set.")
    token = path.read_text(encoding="utf-8").strip()
    if looks_legacy(token):
        return decrypt_legacy(token)
    return decrypt(token)


class AccessGate:
    """Unlocked/locked toggle stored in a session mapping."""

    def __init__(self, session):
        self.session = session

    def is_unlocked(self):
        return bool(self.session.get(SESSION_KEY, False))

    def submit_password(self, candidate):
        """
        Unlock if candidate matches the reference password.

        Returns:
            bool: True on success. A wrong password leaves the state unchanged.

        Raises:
            GateNotConfigured: If no reference password exists
            CryptoError: If the reference password cannot be decrypted
        """
        reference = load_reference_password()
        if not hmac.compare_digest(candidate.encode("utf-8"), reference.encode("utf-8")):
            logger.warning("Rejected wiki unlock attempt")
            return False
        self.session[SESSION_KEY] = True
        logger.info("Wiki unlocked")
        return True

    def lock(self):
        self.session[SESSION_KEY] = False
