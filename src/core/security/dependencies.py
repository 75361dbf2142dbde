from src.core.config import settings
from src.core.security.crypto import SecurityCipher


def get_security_cipher() -> SecurityCipher:
    key = (settings.session_encryption_key or "").strip()
    if not key or key == "replace_with_fernet_key":
        raise ValueError("SESSION_ENCRYPTION_KEY is not configured with a valid Fernet key")
    return SecurityCipher(key)
