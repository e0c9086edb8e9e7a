# academy/services.py
import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from academy import state_machine
from academy.domain import (
    CertificateStatus,
    EnrollmentRecord,
    IssueResult,
    RevocationResult,
    StudentStatus,
    VerificationResult,
)
from academy.errors import AcademyError, AlreadyRevokedError, NotFoundError
from academy.repositories import (
    CertificateRepository,
    CourseRepository,
    EnrollmentRepository,
    StudentRepository,
    changed_fields,
)

logger = logging.getLogger(__name__)

# Certificate code collisions are retried this many times.
CODE_ATTEMPTS = 3


@contextmanager
def _transaction(db: Session):
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def revoke_certificate(
    db: Session,
    certificate_id: int,
    reason,
    notes: Optional[str] = None,
    revoked_by: Optional[str] = None,
) -> RevocationResult:
    certificates = CertificateRepository(db)
    enrollments = EnrollmentRepository(db)
    students = StudentRepository(db)

    with _transaction(db):
        certificate = certificates.get(certificate_id)
        enrollment = enrollments.get(certificate.enrollment_id)
        student = students.get(certificate.student_id)
        result = state_machine.revoke_certificate(
            certificate, enrollment, student, reason, notes=notes, revoked_by=revoked_by,
            student_enrollments=enrollments.list_by_student(student.id),
        )

        written = certificates.update(
            certificate.id,
            changed_fields(certificate, result.certificate),
            expected_status=CertificateStatus.ACTIVE,
        )
        if not written:
            # another request revoked it between our read and write
            raise AlreadyRevokedError(certificate.id)
        enrollments.update(enrollment.id, changed_fields(enrollment, result.enrollment))
        students.update(student.id, changed_fields(student, result.student))

    logger.info(
        "Revoked certificate id=%s reason=%s enrollment=%s %s->%s student=%s %s->%s",
        certificate.id, result.certificate.revocation_reason.value,
        enrollment.id, enrollment.status.value, result.enrollment.status.value,
        student.id, student.status.value, result.student.status.value,
    )
    return result


def bulk_revoke_certificates(
    db: Session,
    certificate_ids: Sequence[int],
    reason,
    notes: Optional[str] = None,
    revoked_by: Optional[str] = None,
) -> Tuple[List[RevocationResult], Dict[int, AcademyError]]:
    """Revoke each certificate in its own transaction.

    A failure on one certificate does not stop the others; it is reported in
    the returned ``failures`` map keyed by certificate id.
    """
    reason = state_machine.parse_reason(reason)
    results: List[RevocationResult] = []
    failures: Dict[int, AcademyError] = {}
    for certificate_id in dict.fromkeys(certificate_ids):
        try:
            results.append(revoke_certificate(db, certificate_id, reason, notes, revoked_by))
        except AcademyError as e:
            logger.warning("Skipping certificate id=%s: %s", certificate_id, e.message)
            failures[certificate_id] = e
    logger.info("Bulk revoke: %d of %d certificates revoked", len(results), len(certificate_ids))
    return results, failures


def change_enrollment_status(db: Session, enrollment_id: int, status) -> Tuple[EnrollmentRecord, StudentStatus]:
    enrollments = EnrollmentRepository(db)
    students = StudentRepository(db)

    with _transaction(db):
        before = enrollments.get(enrollment_id)
        after = state_machine.change_enrollment_status(before, status)
        student = students.get(before.student_id)
        student_status = state_machine.student_status_after_enrollment_change(
            student, before, after, enrollments.list_by_student(student.id)
        )
        enrollments.update(enrollment_id, changed_fields(before, after))
        if student_status != student.status:
            students.update(student.id, {"status": student_status})

    if before.status != after.status:
        logger.info(
            "Enrollment id=%s %s->%s student=%s status=%s",
            enrollment_id, before.status.value, after.status.value, student.id, student_status.value,
        )
    return after, student_status


def enroll_student(db: Session, student_id: int, course_id: int, batch_number: int) -> EnrollmentRecord:
    enrollments = EnrollmentRepository(db)

    with _transaction(db):
        student = StudentRepository(db).get(student_id)
        course = CourseRepository(db).get(course_id)
        enrollment = state_machine.enroll(
            student, course, batch_number, enrollments.list_by_student(student.id)
        )
        enrollment = enrollments.create(enrollment)

    logger.info("Created enrollment id=%s student=%s course=%s batch=%s",
                enrollment.id, student_id, course_id, batch_number)
    return enrollment


def update_progress(db: Session, enrollment_id: int, progress: int) -> EnrollmentRecord:
    enrollments = EnrollmentRepository(db)
    with _transaction(db):
        before = enrollments.get(enrollment_id)
        after = state_machine.record_progress(before, progress)
        enrollments.update(enrollment_id, changed_fields(before, after))
    return after


def issue_certificate(db: Session, student_id: int, course_id: int, issued_by: str) -> IssueResult:
    certificates = CertificateRepository(db)
    enrollments = EnrollmentRepository(db)
    students = StudentRepository(db)

    for attempt in range(1, CODE_ATTEMPTS + 1):
        try:
            with _transaction(db):
                student = students.get(student_id)
                course = CourseRepository(db).get(course_id)
                enrollment = enrollments.find_for_course(student_id, course_id)
                if enrollment is None:
                    raise NotFoundError("Enrollment", f"{student_id}/{course_id}")
                result = state_machine.issue_certificate(
                    student,
                    course,
                    enrollment,
                    issued_by,
                    student_enrollments=enrollments.list_by_student(student_id),
                    student_certificates=certificates.list_by_student(student_id),
                )
                certificate = certificates.create(result.certificate)
                enrollments.update(enrollment.id, changed_fields(enrollment, result.enrollment))
                students.update(student.id, changed_fields(student, result.student))
        except IntegrityError:
            if attempt == CODE_ATTEMPTS:
                raise
            logger.warning("Certificate code collision, retrying (attempt %d)", attempt)
            continue
        break

    result = result.model_copy(update={"certificate": certificate})
    logger.info("Issued certificate id=%s code=%s student=%s course=%s",
                certificate.id, certificate.code, student_id, course_id)
    return result


def verify_certificate(db: Session, code: str) -> VerificationResult:
    certificate = CertificateRepository(db).get_by_code(code.strip().upper())
    result = state_machine.verify_certificate(certificate)
    logger.info("Verified certificate code=%s valid=%s", certificate.code, result.is_valid)
    return result


def get_student(db: Session, student_id: int):
    return StudentRepository(db).get(student_id)


def get_enrollment(db: Session, enrollment_id: int) -> EnrollmentRecord:
    return EnrollmentRepository(db).get(enrollment_id)


def list_enrollments(db: Session, student_id=None, status=None) -> List[EnrollmentRecord]:
    if status is not None:
        status = state_machine.parse_enrollment_status(status)
    return EnrollmentRepository(db).list(student_id=student_id, status=status)

