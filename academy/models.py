from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func

from academy.database import Base


class Student(Base):
    __tablename__ = "students"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    status = Column(String(32), default="ACTIVE", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Course(Base):
    __tablename__ = "courses"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    status = Column(String(20), default="ACTIVE", nullable=False)
    batch_number = Column(Integer, default=1, nullable=False)
    batch_max_students = Column(Integer)
    batch_is_active = Column(Boolean, default=True, nullable=False)
    batch_start_date = Column(DateTime(timezone=True))
    batch_end_date = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def current_batch(self):
        return {
            "batch_number": self.batch_number,
            "max_students": self.batch_max_students,
            "is_active": self.batch_is_active,
            "start_date": self.batch_start_date,
            "end_date": self.batch_end_date,
        }


class Enrollment(Base):
    __tablename__ = "enrollments"
    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), index=True, nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
    batch_number = Column(Integer, nullable=False)
    status = Column(String(32), default="ENROLLED", nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True))
    progress = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Certificate(Base):
    __tablename__ = "certificates"
    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, index=True, nullable=False)
    student_id = Column(Integer, ForeignKey("students.id"), index=True, nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), index=True, nullable=False)
    enrollment_id = Column(Integer, ForeignKey("enrollments.id"), nullable=False)
    status = Column(String(20), default="ACTIVE", index=True, nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    issued_by = Column(String(64), nullable=False)
    revoked_at = Column(DateTime(timezone=True))
    revoked_by = Column(String(64))
    revocation_reason = Column(String(32))
    revocation_notes = Column(Text)
