"""
Academy service - test configuration and fixtures
"""
import os
from datetime import datetime, timezone
from typing import Generator

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# Set testing environment before the app reads it
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['RABBITMQ_URL'] = ''
os.environ['RATE_LIMIT_REQUESTS'] = '1000'

from academy import database, models
from academy.main import app, get_db

fake = Faker()

TEST_DATABASE_URL = 'sqlite://'


@pytest.fixture(scope='function')
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory database for each test"""
    engine = database.init_db(TEST_DATABASE_URL)
    database.Base.metadata.drop_all(bind=engine)
    database.Base.metadata.create_all(bind=engine)
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Test client sharing the test session"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_student(db_session: Session):
    def factory(status: str = 'ACTIVE') -> models.Student:
        student = models.Student(name=fake.name(), email=fake.unique.email(), status=status)
        db_session.add(student)
        db_session.commit()
        db_session.refresh(student)
        return student
    return factory


@pytest.fixture
def make_course(db_session: Session):
    def factory(batch_number: int = 3, status: str = 'ACTIVE') -> models.Course:
        course = models.Course(
            title=fake.catch_phrase(),
            status=status,
            batch_number=batch_number,
            batch_max_students=30,
            batch_is_active=True,
        )
        db_session.add(course)
        db_session.commit()
        db_session.refresh(course)
        return course
    return factory


@pytest.fixture
def make_enrollment(db_session: Session):
    def factory(student, course, status: str = 'ENROLLED', progress: int = 0,
                batch_number: int = 1) -> models.Enrollment:
        enrollment = models.Enrollment(
            student_id=student.id,
            course_id=course.id,
            batch_number=batch_number,
            status=status,
            start_date=datetime.now(timezone.utc),
            progress=progress,
        )
        db_session.add(enrollment)
        db_session.commit()
        db_session.refresh(enrollment)
        return enrollment
    return factory


@pytest.fixture
def make_certificate(db_session: Session):
    def factory(enrollment, status: str = 'ACTIVE', code: str = None) -> models.Certificate:
        certificate = models.Certificate(
            code=code or f"LV-{fake.unique.bothify('?????', letters='ABCDEFGHJK')}-"
                         f"{fake.bothify('#####')}",
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            enrollment_id=enrollment.id,
            status=status,
            issued_at=datetime.now(timezone.utc),
            issued_by='admin-1',
        )
        db_session.add(certificate)
        db_session.commit()
        db_session.refresh(certificate)
        return certificate
    return factory


@pytest.fixture
def completed_setup(make_student, make_course, make_enrollment, make_certificate):
    """Student S with one COMPLETED enrollment E in course C holding an ACTIVE certificate"""
    student = make_student(status='GRADUATED')
    course = make_course()
    enrollment = make_enrollment(student, course, status='COMPLETED', progress=100)
    certificate = make_certificate(enrollment)
    return student, course, enrollment, certificate
