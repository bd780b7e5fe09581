from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AutoPublishSessionResultRead(CamelModel):
    success: bool
    project_id: str
    session_id: str
    session_name: str
    certificates_created: int = 0
    emails_sent: int = 0
    notifications_sent: int = 0
    errors: list[str] = Field(default_factory=list)


class AutoPublishWindowRead(CamelModel):
    start_utc: datetime
    end_utc: datetime


class AutoPublishRunResponse(CamelModel):
    message: str
    run_id: str | None = None
    processed_sessions: int = 0
    successful_sessions: int = 0
    execution_time_ms: int = 0
    window: AutoPublishWindowRead | None = None
    scan_error: str | None = None
    results: list[AutoPublishSessionResultRead] = Field(default_factory=list)


class AutoPublishStatusResponse(CamelModel):
    message: str
    enabled: bool
    timestamp: datetime
    window: AutoPublishWindowRead
    email_channel: dict[str, Any] = Field(default_factory=dict)


class CertificateRecipientRead(CamelModel):
    name: str
    email: str | None = None


class CertificateSummaryRead(CamelModel):
    id: str
    certified: bool
    issued_at: datetime | None = None
    type: str = "platform"
    duration_minutes: int | None = None
    recipient: CertificateRecipientRead


class CertificateEventRead(CamelModel):
    start_date: datetime | None = None
    end_date: datetime | None = None


class CertificateProjectRead(CamelModel):
    id: str
    title: str
    location: str | None = None


class CertificateOrganizationRead(CamelModel):
    name: str | None = None


class CertificateOrganizerRead(CamelModel):
    id: str | None = None
    name: str


class CertificateVerificationMeta(CamelModel):
    timestamp: datetime


class CertificateVerificationResponse(CamelModel):
    valid: bool
    exists: bool
    certificate: CertificateSummaryRead
    event: CertificateEventRead
    project: CertificateProjectRead
    organization: CertificateOrganizationRead
    organizer: CertificateOrganizerRead
    verification: CertificateVerificationMeta
