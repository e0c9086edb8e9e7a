# academy/domain.py
from enum import Enum
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GRADUATED = "GRADUATED"
    SUSPENDED_VIOLATION = "SUSPENDED_VIOLATION"


class CourseStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    UPCOMING = "UPCOMING"


class EnrollmentStatus(str, Enum):
    ENROLLED = "ENROLLED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    TERMINATED_VIOLATION = "TERMINATED_VIOLATION"
    # aliases used by the student-enrollment variant
    ACTIVE = "ENROLLED"
    DROPPED = "CANCELLED"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            key = value.upper()
            if key in cls.__members__:
                return cls.__members__[key]
        return None


class CertificateStatus(str, Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


class RevocationReason(str, Enum):
    MISUSE_VIOLATION = "MISUSE_VIOLATION"
    ADMINISTRATIVE_ERROR = "ADMINISTRATIVE_ERROR"


# Terminal enrollment states carry an end date.
TERMINAL_ENROLLMENT_STATUSES = frozenset({
    EnrollmentStatus.COMPLETED,
    EnrollmentStatus.CANCELLED,
    EnrollmentStatus.TERMINATED_VIOLATION,
})


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class StudentRecord(_Record):
    id: int
    name: str
    email: str
    status: StudentStatus = StudentStatus.ACTIVE


class CourseBatch(_Record):
    batch_number: int = Field(ge=1)
    max_students: Optional[int] = None
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class CourseRecord(_Record):
    id: int
    title: str
    status: CourseStatus = CourseStatus.ACTIVE
    current_batch: CourseBatch


class EnrollmentRecord(_Record):
    id: Optional[int] = None
    student_id: int
    course_id: int
    batch_number: int
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    start_date: datetime
    end_date: Optional[datetime] = None
    progress: int = Field(default=0, ge=0, le=100)

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ENROLLED


class CertificateRecord(_Record):
    id: Optional[int] = None
    code: str
    student_id: int
    course_id: int
    enrollment_id: int
    status: CertificateStatus = CertificateStatus.ACTIVE
    issued_at: datetime
    issued_by: str
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    revocation_reason: Optional[RevocationReason] = None
    revocation_notes: Optional[str] = None


class RevocationResult(_Record):
    """The consistent (certificate, enrollment, student) triple after a revocation."""
    certificate: CertificateRecord
    enrollment: EnrollmentRecord
    student: StudentRecord


class IssueResult(_Record):
    certificate: CertificateRecord
    enrollment: EnrollmentRecord
    student: StudentRecord


class VerificationResult(_Record):
    is_valid: bool
    message: str
    certificate: CertificateRecord
