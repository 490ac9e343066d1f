"""
Encryption of the storage secrets kept in the config file.

The access key and secret key are stored as Fernet tokens under a key derived
from this machine and user, so a copied config file is useless elsewhere.
"""

from functools import lru_cache
from typing import Optional
import base64
import binascii
import logging
import os

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

SECRET_KEY_SALT = b'zipdrop-salt-v1'
KDF_ITERATIONS = 100000


def _derive_key(passphrase: str, salt: bytes = SECRET_KEY_SALT) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode()))


def _machine_identity() -> str:
    try:
        with open('/etc/machine-id', 'r') as f:
            machine_id = f.read().strip()
    except OSError:
        # No /etc/machine-id on macOS and Windows
        machine_id = os.getenv('HOSTNAME') or os.getenv('COMPUTERNAME') or 'default-machine'

    username = os.getenv('USER') or os.getenv('USERNAME') or 'default-user'
    return f"{machine_id}-{username}"


@lru_cache(maxsize=1)
def machine_key() -> bytes:
    """Fernet key bound to this machine and user (derived once per process)."""
    return _derive_key(_machine_identity())


def key_for_passphrase(passphrase: str) -> bytes:
    """Fernet key derived from an explicit passphrase instead of the machine."""
    return _derive_key(passphrase)


def encrypt_secret(value: str, key: Optional[bytes] = None) -> str:
    """
    Encrypt one stored secret.

    Args:
        value: Plain secret
        key: Fernet key (machine key if None)

    Returns:
        URL-safe text token suitable for JSON
    """
    token = Fernet(key or machine_key()).encrypt(value.encode())
    return base64.urlsafe_b64encode(token).decode()


def decrypt_secret(token: str, key: Optional[bytes] = None) -> Optional[str]:
    """
    Decrypt a secret written by encrypt_secret.

    Returns None when the token is malformed or was made with another key,
    e.g. a config file copied from a different machine.
    """
    try:
        raw = base64.urlsafe_b64decode(token.encode())
        return Fernet(key or machine_key()).decrypt(raw).decode()
    except (InvalidToken, binascii.Error, ValueError) as e:
        logger.warning("Could not decrypt stored secret: %s", e.__class__.__name__)
        return None
