"""
Academy service errors.

Every rejection raised by the state machine, the services or the HTTP layer is
an ``AcademyError``. The HTTP layer maps ``status_code`` straight onto the
response and serialises ``to_dict()`` as the body, so handlers never need to
translate individual kinds.

Usage:
    from academy.errors import NotFoundError

    if certificate is None:
        raise NotFoundError("Certificate", certificate_id)
"""

from typing import Any, Dict, Optional


class AcademyError(Exception):
    """Base exception for all academy errors"""

    status_code = 400

    def __init__(
        self,
        message: str,
        code: str = "ACADEMY_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "detail": self.message,
            "details": self.details
        }


class NotFoundError(AcademyError):
    """Referenced certificate, enrollment, student or course does not exist"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


# ============================================
# Certificate errors
# ============================================

class AlreadyRevokedError(AcademyError):
    """Revocation requested for a certificate that is not ACTIVE"""

    status_code = 409

    def __init__(self, certificate_id: Any):
        super().__init__(
            f"Certificate '{certificate_id}' is already revoked",
            code="ALREADY_REVOKED",
            details={"certificate_id": str(certificate_id)}
        )


class InvalidReasonError(AcademyError):
    def __init__(self, reason: Any):
        super().__init__(
            f"Invalid revocation reason: {reason!r}",
            code="INVALID_REASON",
            details={"reason": str(reason)}
        )


class CertificateAlreadyIssuedError(AcademyError):
    status_code = 409

    def __init__(self, student_id: Any, course_id: Any):
        super().__init__(
            "Certificate already exists for this student and course",
            code="CERTIFICATE_ALREADY_ISSUED",
            details={"student_id": str(student_id), "course_id": str(course_id)}
        )


# ============================================
# Enrollment errors
# ============================================

class ForbiddenTransitionError(AcademyError):
    """Attempt to set, or leave, a violation-only status directly"""

    def __init__(self, current: Any, requested: Any):
        super().__init__(
            f"Enrollment status cannot change from {current} to {requested}",
            code="FORBIDDEN_TRANSITION",
            details={"current": str(current), "requested": str(requested)}
        )


class InvalidStatusError(AcademyError):
    def __init__(self, status: Any):
        super().__init__(
            f"Unknown enrollment status: {status!r}",
            code="INVALID_STATUS",
            details={"status": str(status)}
        )


class InvalidBatchError(AcademyError):
    def __init__(self, batch_number: int, current_batch_number: int):
        super().__init__(
            f"Invalid batch number {batch_number}: current batch is {current_batch_number}",
            code="INVALID_BATCH",
            details={"batch_number": batch_number, "current_batch_number": current_batch_number}
        )


class DuplicateEnrollmentError(AcademyError):
    status_code = 409

    def __init__(self, student_id: Any, course_id: Any):
        super().__init__(
            "Student is already enrolled in this course",
            code="DUPLICATE_ENROLLMENT",
            details={"student_id": str(student_id), "course_id": str(course_id)}
        )


class EnrollmentNotActiveError(AcademyError):
    def __init__(self, enrollment_id: Any, status: Any):
        super().__init__(
            f"Enrollment '{enrollment_id}' is not active (status {status})",
            code="ENROLLMENT_NOT_ACTIVE",
            details={"enrollment_id": str(enrollment_id), "status": str(status)}
        )


class InvalidProgressError(AcademyError):
    def __init__(self, message: str, progress: Any):
        super().__init__(message, code="INVALID_PROGRESS", details={"progress": progress})


class CourseNotActiveError(AcademyError):
    def __init__(self, course_id: Any, status: Any):
        super().__init__(
            f"Course '{course_id}' is not active (status {status})",
            code="COURSE_NOT_ACTIVE",
            details={"course_id": str(course_id), "status": str(status)}
        )


# ============================================
# Student errors
# ============================================

class StudentNotEligibleError(AcademyError):
    def __init__(self, student_id: Any, status: Any):
        super().__init__(
            f"Student '{student_id}' is not eligible (status {status})",
            code="STUDENT_NOT_ELIGIBLE",
            details={"student_id": str(student_id), "status": str(status)}
        )


# ============================================
# Transport errors
# ============================================

class RateLimitExceededError(AcademyError):
    status_code = 429

    def __init__(self, key: str, retry_after: int):
        super().__init__(
            "Too many requests, please try again later",
            code="RATE_LIMITED",
            details={"key": key, "retry_after": retry_after}
        )
