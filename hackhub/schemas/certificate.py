from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, HttpUrl, field_serializer

from hackhub.core.config import BULK_CERTIFICATE_LIMIT


class CertificateCreate(BaseModel):
    event_id: int = Field(gt=0)
    user_id: int = Field(gt=0)
    certificate_url: HttpUrl

    @field_serializer("certificate_url")
    def url_as_str(self, url: HttpUrl) -> str:
        return str(url)


class CertificateBulkCreate(BaseModel):
    event_id: int = Field(gt=0)
    user_ids: list[int] = Field(min_length=1, max_length=BULK_CERTIFICATE_LIMIT)
    certificate_url: HttpUrl

    @field_serializer("certificate_url")
    def url_as_str(self, url: HttpUrl) -> str:
        return str(url)


class CertificateUpdate(BaseModel):
    certificate_url: HttpUrl

    @field_serializer("certificate_url")
    def url_as_str(self, url: HttpUrl) -> str:
        return str(url)


class CertificateRead(BaseModel):
    id: str
    event_id: int
    user_id: int
    certificate_url: str
    issued_by: Optional[int] = None
    issued_at: datetime
    updated_at: Optional[datetime] = None
    event_name: Optional[str] = None
    user_name: Optional[str] = None


class BulkIssueResult(BaseModel):
    issued: list[dict]
    skipped: list[dict]
    errors: list[dict]
    summary: dict


class CertificateTemplate(BaseModel):
    id: str
    name: str
    preview: str


class CertificateGenerate(BaseModel):
    recipient_name: str = Field(min_length=1, max_length=255)
    event_id: int = Field(gt=0)
    template: str = Field(min_length=1, max_length=50)
    heading: str = "Certificate of Achievement"
    description: str = "for outstanding participation and contribution"
    author_name: Optional[str] = None
    logo_url: Optional[str] = None
    certificate_type: str = "participant"
