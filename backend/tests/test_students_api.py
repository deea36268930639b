from registration.repositories import EnrollmentRepository


def _student(email='ada@example.com', **extra):
    body = {'firstName': 'Ada', 'lastName': 'Lovelace', 'email': email}
    body.update(extra)
    return body


def test_create_student_with_courses(client, make_course, count_enrollments):
    c1 = make_course('MATH101', 'Algebra')
    c2 = make_course('PHYS101', 'Physics')
    r = client.post('/students', json=_student(phoneNumber='555-0100', dateOfBirth='1990-12-10',
                                               courseIds=[c1['CourseID'], c2['CourseID']]))
    assert r.status_code == 201
    body = r.json()
    assert body['FirstName'] == 'Ada'
    assert body['PhoneNumber'] == '555-0100'
    assert body['DateOfBirth'] == '1990-12-10'
    assert body['Address'] is None
    assert body['EnrolledCourses'] == 'Algebra, Physics'
    assert count_enrollments(student_id=body['StudentID']) == 2


def test_create_student_without_courses(client):
    r = client.post('/students', json=_student(dateOfBirth=''))
    assert r.status_code == 201
    assert r.json()['EnrolledCourses'] == ''
    assert r.json()['DateOfBirth'] is None


def test_create_student_requires_names_and_email(client):
    r = client.post('/students', json={'firstName': 'Ada', 'lastName': 'Lovelace'})
    assert r.status_code == 400
    assert r.json() == {'error': 'FirstName, LastName, and Email are required'}


def test_duplicate_email_conflicts(client):
    assert client.post('/students', json=_student()).status_code == 201
    r = client.post('/students', json=_student(firstName='Other'))
    assert r.status_code == 400
    assert r.json() == {'error': 'Email already exists'}
    assert len(client.get('/students').json()) == 1


def test_create_rolls_back_when_second_enrollment_fails(client, make_course, count_enrollments, monkeypatch):
    c1 = make_course('CS101')
    c2 = make_course('CS102')
    original_add = EnrollmentRepository.add
    calls = []

    def flaky_add(self, student_id, course_id, enrolled_at):
        calls.append(course_id)
        if len(calls) == 2:
            raise RuntimeError("injected failure")
        return original_add(self, student_id, course_id, enrolled_at)

    monkeypatch.setattr(EnrollmentRepository, "add", flaky_add)
    r = client.post('/students', json=_student(courseIds=[c1['CourseID'], c2['CourseID']]))
    assert r.status_code == 500
    assert r.json() == {'error': 'Failed to create student'}
    assert calls == [c1['CourseID'], c2['CourseID']]
    assert client.get('/students').json() == []
    assert count_enrollments() == 0


def test_create_rolls_back_on_unknown_course(client, make_course, count_enrollments):
    c1 = make_course('CS101')
    r = client.post('/students', json=_student(courseIds=[c1['CourseID'], 9999]))
    assert r.status_code == 500
    assert client.get('/students').json() == []
    assert count_enrollments() == 0


def test_create_with_duplicate_course_ids_rolls_back(client, make_course, count_enrollments):
    c1 = make_course('CS101')
    r = client.post('/students', json=_student(courseIds=[c1['CourseID'], c1['CourseID']]))
    assert r.status_code == 400
    assert client.get('/students').json() == []
    assert count_enrollments() == 0


def test_list_students_newest_first(client, make_course):
    course = make_course('ENG101', 'Composition')
    first = client.post('/students', json=_student('first@example.com')).json()
    second = client.post('/students', json=_student('second@example.com', courseIds=[course['CourseID']])).json()
    rows = client.get('/students').json()
    assert [s['StudentID'] for s in rows] == [second['StudentID'], first['StudentID']]
    assert rows[0]['EnrolledCourses'] == 'Composition'
    assert rows[1]['EnrolledCourses'] == ''


def test_get_student_with_courses(client, make_course):
    course = make_course('CS101', 'Programming')
    created = client.post('/students', json=_student(courseIds=[course['CourseID']])).json()
    r = client.get(f"/students/{created['StudentID']}")
    assert r.status_code == 200
    body = r.json()
    assert body['Email'] == 'ada@example.com'
    assert len(body['courses']) == 1
    enrolled = body['courses'][0]
    assert enrolled['CourseCode'] == 'CS101'
    assert enrolled['Category'] == 'IT'
    assert enrolled['EnrollmentDate']


def test_get_missing_student_is_404_without_detail(client):
    r = client.get('/students/4242')
    assert r.status_code == 404
    assert r.json() == {'error': 'Student not found'}


def test_update_student(client):
    created = client.post('/students', json=_student(address='Old Street')).json()
    r = client.put(f"/students/{created['StudentID']}",
                   json=_student('ada.l@example.com', lastName='King', address='New Street'))
    assert r.status_code == 200
    assert r.json() == {'message': 'Student updated successfully'}
    fetched = client.get(f"/students/{created['StudentID']}").json()
    assert fetched['LastName'] == 'King'
    assert fetched['Email'] == 'ada.l@example.com'
    assert fetched['Address'] == 'New Street'
    assert fetched['CreatedAt'] == created['CreatedAt']


def test_update_unknown_student_still_succeeds(client):
    r = client.put('/students/777', json=_student())
    assert r.status_code == 200
    assert client.get('/students').json() == []


def test_update_student_validation_and_conflict(client):
    a = client.post('/students', json=_student('a@example.com')).json()
    client.post('/students', json=_student('b@example.com'))
    assert client.put(f"/students/{a['StudentID']}", json={'firstName': 'A'}).status_code == 400
    clash = client.put(f"/students/{a['StudentID']}", json=_student('b@example.com'))
    assert clash.status_code == 400
    assert clash.json() == {'error': 'Email already exists'}


def test_bulk_enroll_is_idempotent(client, make_course, count_enrollments):
    c1 = make_course('CS101')
    c2 = make_course('MATH101')
    student = client.post('/students', json=_student(courseIds=[c1['CourseID']])).json()
    ids = [c1['CourseID'], c2['CourseID']]
    for _ in range(2):
        r = client.post(f"/students/{student['StudentID']}/courses", json={'courseIds': ids})
        assert r.status_code == 200
        assert r.json() == {'message': 'Courses enrolled successfully'}
    assert count_enrollments(student_id=student['StudentID']) == 2
    assert count_enrollments(student_id=student['StudentID'], course_id=c1['CourseID']) == 1


def test_bulk_enroll_requires_course_ids(client):
    student = client.post('/students', json=_student()).json()
    for body in ({'courseIds': []}, {}):
        r = client.post(f"/students/{student['StudentID']}/courses", json=body)
        assert r.status_code == 400
        assert r.json() == {'error': 'Course IDs array is required'}


def test_bulk_enroll_rolls_back_on_unknown_course(client, make_course, count_enrollments):
    c1 = make_course('CS101')
    student = client.post('/students', json=_student()).json()
    r = client.post(f"/students/{student['StudentID']}/courses", json={'courseIds': [c1['CourseID'], 9999]})
    assert r.status_code == 500
    assert count_enrollments(student_id=student['StudentID']) == 0


def test_remove_enrollment(client, make_course, count_enrollments):
    c1 = make_course('CS101')
    student = client.post('/students', json=_student(courseIds=[c1['CourseID']])).json()
    url = f"/students/{student['StudentID']}/courses/{c1['CourseID']}"
    r = client.delete(url)
    assert r.status_code == 200
    assert r.json() == {'message': 'Course enrollment removed successfully'}
    assert count_enrollments() == 0
    # removing a pair that no longer exists is a no-op
    assert client.delete(url).status_code == 200


def test_delete_student_cascades(client, make_course, count_enrollments):
    c1 = make_course('CS101')
    c2 = make_course('CS102')
    student = client.post('/students', json=_student(courseIds=[c1['CourseID'], c2['CourseID']])).json()
    assert count_enrollments(student_id=student['StudentID']) == 2
    r = client.delete(f"/students/{student['StudentID']}")
    assert r.status_code == 200
    assert r.json() == {'message': 'Student deleted successfully'}
    assert count_enrollments(student_id=student['StudentID']) == 0
    assert client.get(f"/students/{student['StudentID']}").status_code == 404
    # unknown ids are not an error
    assert client.delete('/students/9999').status_code == 200


def test_delete_course_cascades(client, make_course, count_enrollments):
    c1 = make_course('CS101', 'Programming')
    c2 = make_course('CS102', 'Data Structures')
    student = client.post('/students', json=_student(courseIds=[c1['CourseID'], c2['CourseID']])).json()
    assert count_enrollments(course_id=c1['CourseID']) == 1
    assert client.delete(f"/courses/{c1['CourseID']}").status_code == 200
    assert count_enrollments(course_id=c1['CourseID']) == 0
    assert count_enrollments(student_id=student['StudentID']) == 1
    assert client.get('/students').json()[0]['EnrolledCourses'] == 'Data Structures'
