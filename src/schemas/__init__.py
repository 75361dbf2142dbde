from src.schemas.businesses import BusinessResponse
from src.schemas.certificates import (
    CertificateActionResponse,
    CertificateResponse,
    CertificateUploadForm,
    PoolStatsResponse,
)

__all__ = [
    "BusinessResponse",
    "CertificateActionResponse",
    "CertificateResponse",
    "CertificateUploadForm",
    "PoolStatsResponse",
]
