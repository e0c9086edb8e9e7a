"""
Enrollment / certificate / student-status decision logic.

Nothing here touches the database or the broker. Each operation takes the
current records, validates the request and returns new records; callers in
``academy.services`` persist the result atomically. Inputs are never mutated,
so a rejected call leaves every entity exactly as it was.
"""
import secrets
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from academy.domain import (
    CertificateRecord,
    CertificateStatus,
    CourseRecord,
    CourseStatus,
    EnrollmentRecord,
    EnrollmentStatus,
    IssueResult,
    RevocationReason,
    RevocationResult,
    StudentRecord,
    StudentStatus,
    TERMINAL_ENROLLMENT_STATUSES,
    VerificationResult,
)
from academy.errors import (
    AlreadyRevokedError,
    CertificateAlreadyIssuedError,
    CourseNotActiveError,
    DuplicateEnrollmentError,
    EnrollmentNotActiveError,
    ForbiddenTransitionError,
    InvalidBatchError,
    InvalidProgressError,
    InvalidReasonError,
    InvalidStatusError,
    StudentNotEligibleError,
)

# No look-alike characters (0/O, 1/I).
CERTIFICATE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CERTIFICATE_CODE_PREFIX = "LV"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_reason(reason: Union[RevocationReason, str]) -> RevocationReason:
    if isinstance(reason, RevocationReason):
        return reason
    try:
        return RevocationReason(reason)
    except ValueError:
        raise InvalidReasonError(reason) from None


def parse_enrollment_status(status: Union[EnrollmentStatus, str]) -> EnrollmentStatus:
    if isinstance(status, EnrollmentStatus):
        return status
    try:
        return EnrollmentStatus(status)
    except ValueError:
        raise InvalidStatusError(status) from None


def generate_certificate_code() -> str:
    """Return a verification code of the form ``LV-XXXXX-XXXXX``."""
    chars = "".join(secrets.choice(CERTIFICATE_CODE_ALPHABET) for _ in range(10))
    return f"{CERTIFICATE_CODE_PREFIX}-{chars[:5]}-{chars[5:]}"


# ============================================
# Certificate revocation
# ============================================

def revoke_certificate(
    certificate: CertificateRecord,
    enrollment: EnrollmentRecord,
    student: StudentRecord,
    reason: Union[RevocationReason, str],
    notes: Optional[str] = None,
    revoked_by: Optional[str] = None,
    now: Optional[datetime] = None,
    student_enrollments: Iterable[EnrollmentRecord] = (),
) -> RevocationResult:
    """Revoke an ACTIVE certificate and cascade to its enrollment and student.

    ADMINISTRATIVE_ERROR reopens the enrollment (ENROLLED, no end date) and
    leaves the student alone. It is refused while the student holds another
    active enrollment in the same course. MISUSE_VIOLATION terminates the
    enrollment and suspends the student, whatever other enrollments they hold.

    Raises:
        AlreadyRevokedError: the certificate is not ACTIVE.
        InvalidReasonError: ``reason`` is not a RevocationReason.
        DuplicateEnrollmentError: reopening would give the student two active
            enrollments in the course.
    """
    if certificate.status != CertificateStatus.ACTIVE:
        raise AlreadyRevokedError(certificate.id)
    reason = parse_reason(reason)
    if enrollment.id != certificate.enrollment_id or student.id != certificate.student_id:
        raise ValueError("enrollment and student must belong to the certificate")

    now = now or utcnow()
    revoked = certificate.model_copy(update={
        "status": CertificateStatus.REVOKED,
        "revoked_at": now,
        "revoked_by": revoked_by,
        "revocation_reason": reason,
        "revocation_notes": notes,
    })

    if reason == RevocationReason.ADMINISTRATIVE_ERROR:
        for other in student_enrollments:
            if other.id != enrollment.id and other.course_id == enrollment.course_id and other.is_active:
                raise DuplicateEnrollmentError(student.id, enrollment.course_id)
        enrollment = enrollment.model_copy(update={
            "status": EnrollmentStatus.ENROLLED,
            "end_date": None,
        })
    else:
        enrollment = enrollment.model_copy(update={
            "status": EnrollmentStatus.TERMINATED_VIOLATION,
            "end_date": now,
        })
        student = student.model_copy(update={"status": StudentStatus.SUSPENDED_VIOLATION})

    return RevocationResult(certificate=revoked, enrollment=enrollment, student=student)


# ============================================
# Enrollment status
# ============================================

def change_enrollment_status(
    enrollment: EnrollmentRecord,
    requested_status: Union[EnrollmentStatus, str],
    now: Optional[datetime] = None,
) -> EnrollmentRecord:
    """Apply an admin-requested enrollment status.

    TERMINATED_VIOLATION is only reachable through certificate revocation, so
    it can be neither requested nor left here. Requesting the current status
    returns the enrollment unchanged.
    """
    requested = parse_enrollment_status(requested_status)
    if requested == EnrollmentStatus.TERMINATED_VIOLATION:
        raise ForbiddenTransitionError(enrollment.status.value, requested.value)
    if enrollment.status == EnrollmentStatus.TERMINATED_VIOLATION:
        raise ForbiddenTransitionError(enrollment.status.value, requested.value)
    if requested == enrollment.status:
        return enrollment

    now = now or utcnow()
    end_date = now if requested in TERMINAL_ENROLLMENT_STATUSES else None
    return enrollment.model_copy(update={"status": requested, "end_date": end_date})


def student_status_after_enrollment_change(
    student: StudentRecord,
    before: EnrollmentRecord,
    after: EnrollmentRecord,
    other_enrollments: Iterable[EnrollmentRecord],
) -> StudentStatus:
    """Derive the student's status once one of their enrollments changed."""
    if student.status == StudentStatus.SUSPENDED_VIOLATION or before.status == after.status:
        return student.status

    others = [e for e in other_enrollments if e.id != after.id]
    if after.status == EnrollmentStatus.CANCELLED:
        if not any(e.is_active for e in others):
            return StudentStatus.INACTIVE
    elif after.status == EnrollmentStatus.COMPLETED:
        if all(e.status == EnrollmentStatus.COMPLETED for e in others):
            return StudentStatus.GRADUATED
    elif after.status == EnrollmentStatus.ENROLLED:
        return StudentStatus.ACTIVE
    return student.status


def record_progress(enrollment: EnrollmentRecord, progress: int) -> EnrollmentRecord:
    if not 0 <= progress <= 100:
        raise InvalidProgressError("Progress must be between 0 and 100", progress)
    if not enrollment.is_active:
        raise EnrollmentNotActiveError(enrollment.id, enrollment.status.value)
    if progress < enrollment.progress:
        raise InvalidProgressError(
            f"Progress cannot decrease from {enrollment.progress} to {progress}", progress
        )
    return enrollment.model_copy(update={"progress": progress})


# ============================================
# Enrollment creation
# ============================================

def enroll(
    student: StudentRecord,
    course: CourseRecord,
    batch_number: int,
    existing_enrollments: Iterable[EnrollmentRecord] = (),
    now: Optional[datetime] = None,
) -> EnrollmentRecord:
    """Build a new ACTIVE enrollment of ``student`` in ``course``.

    Raises:
        InvalidBatchError: ``batch_number`` is beyond the course's current batch.
        DuplicateEnrollmentError: the student already holds an active
            enrollment in this course.
    """
    current_batch = course.current_batch.batch_number
    if batch_number > current_batch:
        raise InvalidBatchError(batch_number, current_batch)

    for existing in existing_enrollments:
        if existing.student_id == student.id and existing.course_id == course.id and existing.is_active:
            raise DuplicateEnrollmentError(student.id, course.id)

    return EnrollmentRecord(
        student_id=student.id,
        course_id=course.id,
        batch_number=batch_number,
        status=EnrollmentStatus.ENROLLED,
        start_date=now or utcnow(),
        progress=0,
    )


# ============================================
# Certificate issuance and verification
# ============================================

def issue_certificate(
    student: StudentRecord,
    course: CourseRecord,
    enrollment: EnrollmentRecord,
    issued_by: str,
    student_enrollments: Iterable[EnrollmentRecord] = (),
    student_certificates: Iterable[CertificateRecord] = (),
    code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> IssueResult:
    """Complete ``enrollment`` and issue its certificate.

    Only ACTIVE courses award certificates. The student graduates once no
    other enrollment of theirs is still active.
    """
    if enrollment.student_id != student.id:
        raise ValueError("enrollment must belong to the student")
    if enrollment.course_id != course.id:
        raise ValueError("enrollment must belong to the course")
    if student.status == StudentStatus.SUSPENDED_VIOLATION:
        raise StudentNotEligibleError(student.id, student.status.value)
    if course.status != CourseStatus.ACTIVE:
        raise CourseNotActiveError(course.id, course.status.value)
    if not enrollment.is_active:
        raise EnrollmentNotActiveError(enrollment.id, enrollment.status.value)
    for existing in student_certificates:
        if existing.course_id == enrollment.course_id and existing.status == CertificateStatus.ACTIVE:
            raise CertificateAlreadyIssuedError(student.id, enrollment.course_id)

    now = now or utcnow()
    certificate = CertificateRecord(
        code=code or generate_certificate_code(),
        student_id=student.id,
        course_id=enrollment.course_id,
        enrollment_id=enrollment.id,
        status=CertificateStatus.ACTIVE,
        issued_at=now,
        issued_by=issued_by,
    )
    completed = enrollment.model_copy(update={
        "status": EnrollmentStatus.COMPLETED,
        "end_date": now,
        "progress": 100,
    })
    others = [e for e in student_enrollments if e.id != enrollment.id]
    if not any(e.is_active for e in others):
        student = student.model_copy(update={"status": StudentStatus.GRADUATED})
    return IssueResult(certificate=certificate, enrollment=completed, student=student)


def verify_certificate(certificate: CertificateRecord) -> VerificationResult:
    if certificate.status == CertificateStatus.REVOKED:
        return VerificationResult(
            is_valid=False,
            message="This certificate has been revoked",
            certificate=certificate,
        )
    return VerificationResult(is_valid=True, message="Certificate is valid", certificate=certificate)
