"""
HTTP API tests
"""
from academy import events
from academy.main import app, enforce_rate_limit
from academy.rate_limit import SlidingWindowRateLimiter, rate_limited


class TestHealth:

    def test_root(self, client):
        response = client.get('/')

        assert response.status_code == 200
        assert response.json()['status'] == 'running'

    def test_health(self, client):
        assert client.get('/health').json() == {'status': 'ok'}


class TestEnrollmentEndpoints:

    def test_enroll(self, client, make_student, make_course):
        student, course = make_student(), make_course(batch_number=2)

        response = client.post('/enrollments', json={
            'student_id': student.id, 'course_id': course.id, 'batch_number': 2,
        })

        assert response.status_code == 201
        data = response.json()
        assert data['status'] == 'ENROLLED'
        assert data['progress'] == 0
        assert data['end_date'] is None

    def test_enroll_invalid_batch(self, client, make_student, make_course):
        student, course = make_student(), make_course(batch_number=1)

        response = client.post('/enrollments', json={
            'student_id': student.id, 'course_id': course.id, 'batch_number': 2,
        })

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_BATCH'

    def test_enroll_duplicate(self, client, make_student, make_course, make_enrollment):
        student, course = make_student(), make_course()
        make_enrollment(student, course)

        response = client.post('/enrollments', json={
            'student_id': student.id, 'course_id': course.id, 'batch_number': 1,
        })

        assert response.status_code == 409
        assert response.json()['code'] == 'DUPLICATE_ENROLLMENT'

    def test_enroll_batch_number_must_be_positive(self, client, make_student, make_course):
        response = client.post('/enrollments', json={
            'student_id': make_student().id, 'course_id': make_course().id, 'batch_number': 0,
        })

        assert response.status_code == 422

    def test_get_missing_enrollment(self, client):
        response = client.get('/enrollments/12345')

        assert response.status_code == 404
        assert response.json()['code'] == 'ENROLLMENT_NOT_FOUND'

    def test_terminated_violation_is_forbidden(self, client, make_student, make_course, make_enrollment):
        enrollment = make_enrollment(make_student(), make_course())

        response = client.patch(f'/enrollments/{enrollment.id}', json={'status': 'TERMINATED_VIOLATION'})

        assert response.status_code == 400
        assert response.json()['code'] == 'FORBIDDEN_TRANSITION'
        assert client.get(f'/enrollments/{enrollment.id}').json()['status'] == 'ENROLLED'

    def test_change_status(self, client, make_student, make_course, make_enrollment):
        enrollment = make_enrollment(make_student(), make_course())

        response = client.patch(f'/enrollments/{enrollment.id}', json={'status': 'DROPPED'})

        assert response.status_code == 200
        data = response.json()
        assert data['enrollment']['status'] == 'CANCELLED'
        assert data['enrollment']['end_date'] is not None
        assert data['student_status'] == 'INACTIVE'

    def test_progress(self, client, make_student, make_course, make_enrollment):
        enrollment = make_enrollment(make_student(), make_course(), progress=30)

        assert client.patch(f'/enrollments/{enrollment.id}/progress', json={'progress': 55}).json()['progress'] == 55
        response = client.patch(f'/enrollments/{enrollment.id}/progress', json={'progress': 10})

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_PROGRESS'

    def test_list_filters(self, client, make_student, make_course, make_enrollment):
        student = make_student()
        make_enrollment(student, make_course())
        make_enrollment(student, make_course(), status='COMPLETED')
        make_enrollment(make_student(), make_course())

        everything = client.get('/enrollments').json()
        mine = client.get('/enrollments', params={'student_id': student.id}).json()
        active = client.get('/enrollments', params={'student_id': student.id, 'status': 'active'}).json()

        assert len(everything) == 3
        assert len(mine) == 2
        assert [e['status'] for e in active] == ['ENROLLED']


class TestCertificateEndpoints:

    def test_revoke_misuse(self, client, completed_setup):
        student, course, enrollment, certificate = completed_setup

        response = client.post(f'/certificates/{certificate.id}/revoke', json={
            'reason': 'MISUSE_VIOLATION', 'notes': 'cheating', 'revoked_by': 'admin-2',
        })

        assert response.status_code == 200
        data = response.json()
        assert data['certificate']['status'] == 'REVOKED'
        assert data['certificate']['revocation_reason'] == 'MISUSE_VIOLATION'
        assert data['certificate']['verification_url'].endswith(f"/verify/{certificate.code}")
        assert data['enrollment']['status'] == 'TERMINATED_VIOLATION'
        assert data['student']['status'] == 'SUSPENDED_VIOLATION'
        assert client.get(f'/students/{student.id}').json()['status'] == 'SUSPENDED_VIOLATION'

    def test_revoke_twice(self, client, completed_setup):
        certificate = completed_setup[3]
        client.post(f'/certificates/{certificate.id}/revoke', json={'reason': 'ADMINISTRATIVE_ERROR'})

        response = client.post(f'/certificates/{certificate.id}/revoke', json={'reason': 'ADMINISTRATIVE_ERROR'})

        assert response.status_code == 409
        assert response.json()['code'] == 'ALREADY_REVOKED'

    def test_revoke_invalid_reason(self, client, completed_setup):
        response = client.post(f'/certificates/{completed_setup[3].id}/revoke', json={'reason': 'EXPIRED'})

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_REASON'

    def test_bulk_revoke(self, client, completed_setup):
        certificate = completed_setup[3]

        response = client.post('/certificates/bulk-revoke', json={
            'certificate_ids': [certificate.id, 4040], 'reason': 'ADMINISTRATIVE_ERROR',
        })

        assert response.status_code == 200
        data = response.json()
        assert data['revoked_count'] == 1
        assert data['total_count'] == 2
        assert list(data['failures']) == ['4040']

    def test_issue_and_verify(self, client, make_student, make_course, make_enrollment):
        student, course = make_student(), make_course()
        make_enrollment(student, course)

        response = client.post('/certificates', json={
            'student_id': student.id, 'course_id': course.id, 'issued_by': 'admin-1',
        })

        assert response.status_code == 201
        code = response.json()['certificate']['code']
        verified = client.get(f'/certificates/verify/{code}').json()
        assert verified['is_valid'] is True
        assert verified['certificate']['code'] == code

    def test_issue_for_upcoming_course(self, client, make_student, make_course, make_enrollment):
        student, course = make_student(), make_course(status='UPCOMING')
        make_enrollment(student, course)

        response = client.post('/certificates', json={
            'student_id': student.id, 'course_id': course.id, 'issued_by': 'admin-1',
        })

        assert response.status_code == 400
        assert response.json()['code'] == 'COURSE_NOT_ACTIVE'

    def test_verify_unknown(self, client):
        assert client.get('/certificates/verify/LV-XXXXX-XXXXX').status_code == 404


class TestEvents:

    def test_revocation_publishes_event(self, client, completed_setup, monkeypatch):
        published = []
        monkeypatch.setattr(events, 'publish_event', lambda url, key, event: published.append((key, event)))

        client.post(f'/certificates/{completed_setup[3].id}/revoke', json={'reason': 'MISUSE_VIOLATION'})

        assert len(published) == 1
        key, event = published[0]
        assert key == 'enrollment.events'
        assert event['type'] == 'CertificateRevoked'
        assert event['payload']['student_status'] == 'SUSPENDED_VIOLATION'

    def test_rejected_request_publishes_nothing(self, client, make_student, make_course,
                                                make_enrollment, monkeypatch):
        published = []
        monkeypatch.setattr(events, 'publish_event', lambda url, key, event: published.append(event))
        enrollment = make_enrollment(make_student(), make_course())

        client.patch(f'/enrollments/{enrollment.id}', json={'status': 'TERMINATED_VIOLATION'})

        assert published == []


class TestRateLimit:

    def test_admin_endpoints_are_rate_limited(self, client, make_student, make_course, make_enrollment):
        app.dependency_overrides[enforce_rate_limit] = rate_limited(SlidingWindowRateLimiter(max_requests=2))
        enrollment = make_enrollment(make_student(), make_course())
        url = f'/enrollments/{enrollment.id}/progress'

        statuses = [client.patch(url, json={'progress': 40}).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        response = client.patch(url, json={'progress': 40})
        assert response.json()['code'] == 'RATE_LIMITED'
        assert int(response.headers['Retry-After']) >= 1
