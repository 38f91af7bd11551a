import insights

PROOF = "data:image/png;base64,iVBORw0KGgo="


def test_root_and_health(client):
    assert client.get("/").status_code == 200
    res = client.get("/health")
    assert res.json()["ok"] is True
    assert res.json()["storage"] == "MemoryStorage"


def test_teacher_login_returns_token(client, session):
    res = client.post("/auth/login", json={"role": "TEACHER", "identifier": "Raghubir", "password": "SIDHARTH"})
    assert res.status_code == 200
    body = res.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == "t1"
    assert session.current.id == "t1"


def test_bad_teacher_login_keeps_session(client, session, student):
    session.login(student)
    res = client.post("/auth/login", json={"role": "TEACHER", "identifier": "Raghubir", "password": "wrong"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid teacher username or access key."
    assert session.current == student


def test_requests_need_a_token(client):
    assert client.get("/students").status_code == 401
    assert client.get("/students", headers={"Authorization": "Bearer nonsense"}).status_code == 401


def test_logout_invalidates_token(client, teacher_headers):
    assert client.get("/me", headers=teacher_headers).json()["id"] == "t1"
    assert client.post("/auth/logout", headers=teacher_headers).status_code == 200
    assert client.get("/me", headers=teacher_headers).status_code == 401


def test_new_login_replaces_previous_session(client, teacher_headers, login_as):
    student_headers = login_as("STUDENT", "8409313191", "Sidharth")
    assert client.get("/me", headers=teacher_headers).status_code == 401
    assert client.get("/me", headers=student_headers).json()["id"] == "s1"


def test_roster_endpoints(client, teacher_headers):
    res = client.post("/students", headers=teacher_headers,
                      json={"name": "Kavya Singh", "mobile": "9123456780", "class": "9"})
    assert res.status_code == 200
    created = res.json()
    assert created["class"] == "9"

    res = client.put(f"/students/{created['id']}", headers=teacher_headers, json={"batch": "C"})
    assert res.json()["batch"] == "C"

    assert client.get("/students?q=kavya", headers=teacher_headers).json()["items"][0]["id"] == created["id"]

    assert client.delete(f"/students/{created['id']}", headers=teacher_headers).status_code == 428
    assert client.delete(f"/students/{created['id']}?confirm=true", headers=teacher_headers).status_code == 200
    assert client.get(f"/students/{created['id']}", headers=teacher_headers).status_code == 404


def test_roster_rejects_missing_fields(client, teacher_headers):
    res = client.post("/students", headers=teacher_headers, json={"name": "", "mobile": "9123456780"})
    assert res.status_code == 422


def test_student_cannot_edit_roster(client, student_headers):
    res = client.post("/students", headers=student_headers, json={"name": "X", "mobile": "1"})
    assert res.status_code == 403


def test_attendance_toggle_and_sheet(client, teacher_headers):
    res = client.post("/attendance/toggle", headers=teacher_headers, json={"student_id": "s2", "date": "2023-10-05"})
    assert res.json()["status"] == "PRESENT"
    sheet = client.get("/attendance/2023-10-05", headers=teacher_headers).json()["statuses"]
    assert sheet == {"s1": "NOT_MARKED", "s2": "PRESENT", "s3": "NOT_MARKED"}
    assert client.get("/attendance/10-05-2023", headers=teacher_headers).status_code == 400


def test_student_attendance_is_own_only(client, student_headers):
    body = client.get("/attendance", headers=student_headers).json()
    assert len(body["items"]) == 4
    assert body["rate"] == 75
    assert client.get("/attendance?student_id=s2", headers=student_headers).status_code == 403
    res = client.post("/attendance/toggle", headers=student_headers, json={"student_id": "s1", "date": "2023-10-05"})
    assert res.status_code == 403


def test_tests_listing_includes_percentage(client, teacher_headers):
    res = client.post("/tests", headers=teacher_headers, json={
        "student_id": "s1", "subject": "Biology", "date": "2023-10-15",
        "marks_obtained": 40, "total_marks": 50, "grade": "A",
    })
    assert res.status_code == 200
    body = client.get("/tests?student_id=s1", headers=teacher_headers).json()
    assert body["items"][0]["subject"] == "Biology"
    assert body["items"][0]["percentage"] == 80
    assert body["items"][0]["marksObtained"] == 40


def test_insights_endpoint_degrades_without_key(client, student_headers, monkeypatch):
    monkeypatch.setattr(insights.config, "GROQ_API_KEY", None)
    res = client.get("/tests/insights", headers=student_headers)
    assert res.status_code == 200
    assert res.json()["insight"] == insights.ERROR_MESSAGE


def test_payment_review_flow(client, db, login_as):
    db.save_payments([])
    student_headers = login_as("STUDENT", "8409313191", "Sidharth")
    status = client.get("/payments/status?month=2023-10", headers=student_headers).json()
    assert status["delinquent"] is True

    res = client.post("/payments", headers=student_headers, json={
        "amount": 5000, "description": "Monthly Fees - Oct", "method": "UPI / PhonePe",
        "proof_image": PROOF, "date": "2023-10-05",
    })
    assert res.status_code == 200
    payment = res.json()
    assert payment["status"] == "PENDING"
    status = client.get("/payments/status?month=2023-10", headers=student_headers).json()
    assert status == {"month": "2023-10", "studentId": "s1", "delinquent": False, "pendingApproval": True}

    teacher_headers = login_as("TEACHER", "Raghubir", "SIDHARTH")
    assert client.get("/payments/delinquent?month=2023-10", headers=teacher_headers).json()["items"][0]["id"] == "s2"
    res = client.post(f"/payments/{payment['id']}/approve", headers=teacher_headers)
    assert res.json()["status"] == "SUCCESS"
    progress = client.get("/payments/progress?student_id=s1", headers=teacher_headers).json()
    assert progress["paid"] == 5000


def test_payment_without_proof_is_rejected(client, student_headers):
    res = client.post("/payments", headers=student_headers, json={"amount": 5000})
    assert res.status_code == 400


def test_payment_status_for_a_chosen_student(client, db, teacher_headers):
    db.save_payments([])
    assert client.get("/payments/status?month=2023-10", headers=teacher_headers).status_code == 400
    status = client.get("/payments/status?month=2023-10&student_id=s2", headers=teacher_headers).json()
    assert status == {"month": "2023-10", "studentId": "s2", "delinquent": True, "pendingApproval": False}


def test_student_payment_status_is_own_only(client, student_headers):
    assert client.get("/payments/status?student_id=s2", headers=student_headers).status_code == 403
    assert client.get("/payments/status?student_id=s1", headers=student_headers).json()["studentId"] == "s1"


def test_revenue_endpoint_reports_pending_and_success_count(client, teacher_headers):
    body = client.get("/payments/revenue?month=2023-10", headers=teacher_headers).json()
    assert body == {"month": "2023-10", "thisMonth": 5000, "lifetime": 10000, "pendingAmount": 0, "successCount": 2}


def test_export_csv(client, teacher_headers):
    res = client.get("/payments/export", headers=teacher_headers)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert "RCC_Transactions_all.csv" in res.headers["content-disposition"]
    assert res.text.splitlines()[0] == "Student,Date,Description,Amount,Status,Transaction ID,Method"


def test_reminder_lands_in_student_inbox(client, db, teacher_headers):
    res = client.post("/payments/reminders", headers=teacher_headers, json={"student_id": "s2", "month": "October"})
    assert res.status_code == 200
    assert [m.receiver_id for m in db.get_messages()] == ["s2"]


def test_messaging_round_trip(client, login_as):
    student_headers = login_as("STUDENT", "8409313191", "Sidharth")
    assert client.post("/messages", headers=student_headers, json={"content": "Doubt in kinematics"}).status_code == 200

    teacher_headers = login_as("TEACHER", "Raghubir", "SIDHARTH")
    convo = client.get("/messages/s1", headers=teacher_headers).json()
    assert convo["unread"] == 1
    assert convo["items"][0]["senderId"] == "s1"
    assert client.post("/messages/s1/read", headers=teacher_headers).json() == {"marked": 1}
    assert client.get("/messages/s1", headers=teacher_headers).json()["unread"] == 0


def test_student_cannot_read_other_conversations(client, student_headers):
    res = client.get("/messages/s2", headers=student_headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Students can only read their conversation with the teacher"
    assert client.get("/messages/t1", headers=student_headers).status_code == 200


def test_contact_link(client, student_headers):
    assert client.get("/contact/t1", headers=student_headers).json()["tel"] == "tel:9876543210"


def test_calendar_day_and_month(client, teacher_headers):
    res = client.post("/announcements", headers=teacher_headers,
                      json={"title": "Weekly Test Schedule", "message": "Kinematics", "date": "2023-11-20"})
    created = res.json()
    day = client.get("/calendar/day/2023-11-20", headers=teacher_headers).json()
    assert created["id"] in [a["id"] for a in day["announcements"]]
    assert day["hasClasses"] is True
    assert len(day["schedule"]) == 3

    other = client.get("/calendar/day/2023-11-21", headers=teacher_headers).json()
    assert created["id"] not in [a["id"] for a in other["announcements"]]

    month = client.get("/calendar/2023/11", headers=teacher_headers).json()
    assert month["weeks"][0] == [None, None, None, 1, 2, 3, 4]
    assert len(month["announcements"]) == 4
    assert client.get("/calendar/2023/13", headers=teacher_headers).status_code == 400


def test_announcement_delete_requires_confirmation(client, teacher_headers):
    assert client.delete("/announcements/ann1", headers=teacher_headers).status_code == 428
    assert client.delete("/announcements/ann1?confirm=true", headers=teacher_headers).status_code == 200
    ids = [a["id"] for a in client.get("/announcements", headers=teacher_headers).json()["items"]]
    assert ids == ["ann2", "ann3"]


def test_schedule_endpoints(client, teacher_headers):
    res = client.post("/schedule", headers=teacher_headers,
                      json={"time": "08:00 AM", "subject": "Biology", "teacher": "Gupta Mam"})
    assert res.status_code == 200
    res = client.put("/schedule/sch2", headers=teacher_headers, json={"teacher": "Sharma Mam"})
    assert res.json()["teacher"] == "Sharma Mam"
    assert len(client.get("/schedule", headers=teacher_headers).json()["items"]) == 4


def test_dashboard_for_student(client, student_headers):
    stats = client.get("/dashboard", headers=student_headers).json()
    assert stats["attendanceRate"] == 75
    assert stats["avgScore"] == 85
    assert "hasPendingDues" in stats
