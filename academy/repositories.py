# academy/repositories.py
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from academy import models
from academy.domain import (
    CertificateRecord,
    CertificateStatus,
    CourseRecord,
    EnrollmentRecord,
    EnrollmentStatus,
    StudentRecord,
)
from academy.errors import NotFoundError


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in fields.items()}


def changed_fields(before, after) -> Dict[str, Any]:
    """Fields of record ``after`` that differ from ``before``."""
    return {
        name: getattr(after, name)
        for name in type(after).model_fields
        if getattr(before, name) != getattr(after, name)
    }


class _Repository:
    model = None
    record = None
    resource = ""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, id):
        row = self.db.query(self.model).filter(self.model.id == id).first()
        if row is None:
            raise NotFoundError(self.resource, id)
        return row

    def get(self, id):
        return self.record.model_validate(self._row(id))


class _MutableRepository(_Repository):

    def update(self, id, fields: Dict[str, Any]) -> int:
        if not fields:
            return 0
        return self.db.query(self.model).filter(self.model.id == id).update(
            _column_values(fields), synchronize_session="fetch"
        )


class StudentRepository(_MutableRepository):
    model = models.Student
    record = StudentRecord
    resource = "Student"


class CourseRepository(_Repository):
    model = models.Course
    record = CourseRecord
    resource = "Course"


class EnrollmentRepository(_MutableRepository):
    model = models.Enrollment
    record = EnrollmentRecord
    resource = "Enrollment"

    def list_by_student(self, student_id) -> List[EnrollmentRecord]:
        rows = (
            self.db.query(models.Enrollment)
            .filter(models.Enrollment.student_id == student_id)
            .order_by(models.Enrollment.id)
            .all()
        )
        return [EnrollmentRecord.model_validate(r) for r in rows]

    def list(self, student_id=None, status: Optional[EnrollmentStatus] = None) -> List[EnrollmentRecord]:
        q = self.db.query(models.Enrollment)
        if student_id is not None:
            q = q.filter(models.Enrollment.student_id == student_id)
        if status is not None:
            q = q.filter(models.Enrollment.status == status.value)
        rows = q.order_by(models.Enrollment.created_at.desc(), models.Enrollment.id.desc()).all()
        return [EnrollmentRecord.model_validate(r) for r in rows]

    def find_for_course(self, student_id, course_id) -> Optional[EnrollmentRecord]:
        """Most recent enrollment of the student in the course."""
        row = (
            self.db.query(models.Enrollment)
            .filter(models.Enrollment.student_id == student_id,
                    models.Enrollment.course_id == course_id)
            .order_by(models.Enrollment.id.desc())
            .first()
        )
        return EnrollmentRecord.model_validate(row) if row else None

    def create(self, record: EnrollmentRecord) -> EnrollmentRecord:
        row = models.Enrollment(**_column_values(record.model_dump(exclude={"id"})))
        self.db.add(row)
        self.db.flush()
        return EnrollmentRecord.model_validate(row)


class CertificateRepository(_MutableRepository):
    model = models.Certificate
    record = CertificateRecord
    resource = "Certificate"

    def get_by_code(self, code: str) -> CertificateRecord:
        row = self.db.query(models.Certificate).filter(models.Certificate.code == code).first()
        if row is None:
            raise NotFoundError(self.resource, code)
        return CertificateRecord.model_validate(row)

    def list_by_student(self, student_id) -> List[CertificateRecord]:
        rows = (
            self.db.query(models.Certificate)
            .filter(models.Certificate.student_id == student_id)
            .order_by(models.Certificate.id)
            .all()
        )
        return [CertificateRecord.model_validate(r) for r in rows]

    def create(self, record: CertificateRecord) -> CertificateRecord:
        row = models.Certificate(**_column_values(record.model_dump(exclude={"id"})))
        self.db.add(row)
        self.db.flush()
        return CertificateRecord.model_validate(row)

    def update(self, id, fields, expected_status: Optional[CertificateStatus] = None) -> int:
        """Update a certificate; with ``expected_status`` this is a compare-and-swap.

        Returns the number of rows written, 0 when the swap lost.
        """
        q = self.db.query(models.Certificate).filter(models.Certificate.id == id)
        if expected_status is not None:
            q = q.filter(models.Certificate.status == expected_status.value)
        return q.update(_column_values(fields), synchronize_session="fetch")
