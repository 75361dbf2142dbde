from __future__ import annotations

import json

from cryptography.fernet import Fernet, InvalidToken


class EncryptionError(ValueError):
    pass


class SecurityCipher:
    def __init__(self, fernet_key: str) -> None:
        self._fernet = Fernet(fernet_key.encode("utf-8"))

    def encrypt(self, plaintext: str) -> str:
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("utf-8")

    def decrypt(self, ciphertext: str, *, ttl: int | None = None) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"), ttl=ttl)
        except InvalidToken as exc:
            raise EncryptionError("Unable to decrypt value") from exc
        return plaintext.decode("utf-8")

    def seal(self, payload: dict[str, str]) -> str:
        return self.encrypt(json.dumps(payload, separators=(",", ":")))

    def unseal(self, sealed: str, *, ttl: int | None = None) -> dict[str, str]:
        raw = self.decrypt(sealed, ttl=ttl)
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EncryptionError("Sealed value is not a JSON object") from exc
        if not isinstance(payload, dict):
            raise EncryptionError("Sealed value is not a JSON object")
        return payload
