from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    backend_api_url: str = "http://localhost:8000"
    backend_timeout_seconds: float = 10.0

    supabase_url: str = "https://example.supabase.co"
    supabase_anon_key: str = ""

    auth_jwt_secret: str = ""
    auth_jwks_url: str = "https://example.supabase.co/auth/v1/.well-known/jwks.json"
    auth_issuer: str = ""
    auth_audience: str = "authenticated"
    identity_provider_timeout_seconds: float = 5.0

    session_cookie_name: str = "stampeo_admin_session"
    session_cookie_secure: bool = True
    session_cookie_max_age_seconds: int = 7 * 24 * 60 * 60
    session_refresh_threshold_seconds: int = 60
    session_encryption_key: str = "replace_with_fernet_key"

    superadmin_subjects_csv: str = ""
    log_level: str = "INFO"

    def superadmin_subjects(self) -> set[str]:
        if not self.superadmin_subjects_csv.strip():
            return set()
        return {value.strip() for value in self.superadmin_subjects_csv.split(",") if value.strip()}


settings = Settings()
