# academy/schemas.py
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from datetime import datetime

from academy.domain import (
    CertificateStatus,
    EnrollmentStatus,
    RevocationReason,
    StudentStatus,
)


class EnrollmentCreate(BaseModel):
    student_id: int
    course_id: int
    batch_number: int = Field(ge=1)


class EnrollmentStatusUpdate(BaseModel):
    # plain string so the state machine, not the schema, rejects violation statuses
    status: str


class ProgressUpdate(BaseModel):
    progress: int


class EnrollmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    course_id: int
    batch_number: int
    status: EnrollmentStatus
    start_date: datetime
    end_date: Optional[datetime] = None
    progress: int


class EnrollmentStatusOut(BaseModel):
    enrollment: EnrollmentOut
    student_status: StudentStatus


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    status: StudentStatus


class CertificateIssue(BaseModel):
    student_id: int
    course_id: int
    issued_by: str


class CertificateRevoke(BaseModel):
    # validated by the state machine so unknown reasons raise InvalidReasonError
    reason: str
    notes: Optional[str] = None
    revoked_by: Optional[str] = None


class CertificateBulkRevoke(CertificateRevoke):
    certificate_ids: List[int] = Field(min_length=1)


class CertificateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    student_id: int
    course_id: int
    enrollment_id: int
    status: CertificateStatus
    issued_at: datetime
    issued_by: str
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    revocation_reason: Optional[RevocationReason] = None
    revocation_notes: Optional[str] = None
    verification_url: Optional[str] = None


class RevocationOut(BaseModel):
    certificate: CertificateOut
    enrollment: EnrollmentOut
    student: StudentOut


class IssueOut(RevocationOut):
    pass


class BulkRevocationOut(BaseModel):
    revoked_count: int
    total_count: int
    revoked: List[RevocationOut]
    failures: Dict[int, str]


class VerificationOut(BaseModel):
    is_valid: bool
    message: str
    certificate: CertificateOut
