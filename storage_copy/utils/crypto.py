"""
Symmetric encryption for provider credentials kept on Storage documents.
"""

from cryptography.fernet import Fernet
from storage_copy.config import settings


def _fernet() -> Fernet:
    if not settings.TOKEN_ENC_KEY:
        raise RuntimeError("TOKEN_ENC_KEY is not configured")
    return Fernet(settings.TOKEN_ENC_KEY.encode())


def encrypt_token(token: str) -> str:
    """Encrypts a token using Fernet symmetric encryption."""
    return _fernet().encrypt(token.encode()).decode()


def decrypt_token(token: str) -> str:
    """Decrypts a token using Fernet symmetric encryption."""
    return _fernet().decrypt(token.encode()).decode()
