from sqlalchemy import select

from capms.models import Activity, ActivityStatus, AuditLog, Notification, Rule, User

from tests.factories import (
    PASSWORD,
    PDF_DOC,
    auth_headers,
    make_activity,
    make_admin,
    make_rule,
    make_student,
    make_teacher,
    total_points,
)

UPLOAD = {
    "activity_type": "hackathon",
    "event_name": "Smart India Hackathon",
    "level": "state",
    "position": "first",
    "start_date": "2026-03-01",
    "doc_base64": PDF_DOC,
}


# ─────────────────────────────────────────────────────────────
# Health + auth
# ─────────────────────────────────────────────────────────────
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


async def test_login_by_email_and_registration_number(client, db):
    student = await make_student(db, registration_number="CS21A001")

    r = await client.post("/api/auth/login", json={"identifier": student.email, "password": PASSWORD})
    assert r.status_code == 200
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == student.id

    r = await client.post("/api/auth/login", json={"identifier": "CS21A001", "password": PASSWORD})
    assert r.status_code == 200

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["email"] == student.email


async def test_login_rejects_bad_password(client, db):
    student = await make_student(db)
    r = await client.post("/api/auth/login", json={"identifier": student.email, "password": "nope"})
    assert r.status_code == 401
    r = await client.post("/api/auth/login", json={"identifier": "ghost@capms.test", "password": "nope"})
    assert r.status_code == 401


async def test_requests_without_token_are_refused(client):
    r = await client.get("/api/activity/my")
    assert r.status_code == 401


async def test_unverified_account_is_refused(client, db):
    student = await make_student(db, verified=False)
    r = await client.get("/api/activity/my", headers=auth_headers(student))
    assert r.status_code == 403


# ─────────────────────────────────────────────────────────────
# Activity flow + error mapping
# ─────────────────────────────────────────────────────────────
async def test_upload_and_approve_flow(client, db, store):
    await make_rule(db, "hackathon", "state", "first", 50)
    await make_rule(db, "hackathon", "state", "any", 20)
    student = await make_student(db)
    teacher = await make_teacher(db)

    r = await client.post("/api/activity/upload", json=UPLOAD, headers=auth_headers(student))
    assert r.status_code == 201
    activity = r.json()
    assert activity["status"] == "pending"
    assert activity["points_suggested"] == 50
    assert activity["doc_url"].startswith("https://docs.test/")

    r = await client.get("/api/activity/pending", headers=auth_headers(teacher))
    assert r.json()["total"] == 1
    assert r.json()["items"][0]["student"]["id"] == student.id

    r = await client.post(f"/api/activity/{activity['id']}/approve", json={}, headers=auth_headers(teacher))
    assert r.status_code == 200
    assert r.json()["status"] == "approved"
    assert r.json()["points_assigned"] == 50
    assert await total_points(db, student.id) == 50

    r = await client.post(f"/api/activity/{activity['id']}/approve", json={}, headers=auth_headers(teacher))
    assert r.status_code == 409
    assert r.json()["error"] == "state_conflict"

    r = await client.get("/api/activity/stats/me", headers=auth_headers(student))
    assert r.json()["total_points"] == 50
    assert r.json()["progress"] == 50.0


async def test_upload_without_document_is_a_validation_error(client, db):
    student = await make_student(db)
    r = await client.post("/api/activity/upload", json={**UPLOAD, "doc_base64": ""}, headers=auth_headers(student))
    assert r.status_code == 400
    assert r.json() == {"detail": "Document is required", "error": "validation_error"}


async def test_store_outage_maps_to_502(client, db, store):
    student = await make_student(db)
    store.fail_store = True
    r = await client.post("/api/activity/upload", json=UPLOAD, headers=auth_headers(student))
    assert r.status_code == 502
    assert r.json()["error"] == "dependency_error"


async def test_out_of_scope_review_is_forbidden(client, db):
    teacher = await make_teacher(db, classes=(("IT", "S5", ""),))
    activity = await make_activity(db, await make_student(db))
    r = await client.post(
        f"/api/activity/{activity.id}/reject", json={"reason": "no"}, headers=auth_headers(teacher)
    )
    assert r.status_code == 403
    assert r.json()["error"] == "access_denied"


async def test_unknown_activity_is_404(client, db):
    admin = await make_admin(db)
    r = await client.post("/api/activity/999/correction", json={"comments": "x"}, headers=auth_headers(admin))
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


async def test_students_cannot_open_review_queue(client, db):
    student = await make_student(db)
    r = await client.get("/api/activity/pending", headers=auth_headers(student))
    assert r.status_code == 403


async def test_edit_approved_via_put(client, db):
    teacher = await make_teacher(db)
    student = await make_student(db)
    activity = await make_activity(db, student)
    await client.post(f"/api/activity/{activity.id}/approve", json={"points": 40}, headers=auth_headers(teacher))

    r = await client.put(f"/api/activity/{activity.id}", json={"points": 15}, headers=auth_headers(teacher))
    assert r.status_code == 200
    assert r.json()["points_assigned"] == 15
    assert await total_points(db, student.id) == 15


async def test_negative_points_fail_request_validation(client, db):
    teacher = await make_teacher(db)
    activity = await make_activity(db, await make_student(db))
    r = await client.post(f"/api/activity/{activity.id}/approve", json={"points": -1}, headers=auth_headers(teacher))
    assert r.status_code == 422


# ─────────────────────────────────────────────────────────────
# Teacher
# ─────────────────────────────────────────────────────────────
async def test_subscribe_classes_replaces_set(client, db):
    teacher = await make_teacher(db)
    payload = {"classes": [
        {"branch": "cs", "semester": "s6", "section": ""},
        {"branch": "CS", "semester": "S6", "section": ""},
        {"branch": "IT", "semester": "S3", "section": "B"},
    ]}
    r = await client.post("/api/teacher/subscribe-classes", json=payload, headers=auth_headers(teacher))
    assert r.status_code == 200
    assert r.json() == [
        {"branch": "CS", "semester": "S6", "section": ""},
        {"branch": "IT", "semester": "S3", "section": "B"},
    ]

    r = await client.get("/api/teacher/my-classes", headers=auth_headers(teacher))
    assert len(r.json()) == 2

    r = await client.post(
        "/api/teacher/subscribe-classes",
        json={"classes": [{"branch": "XX", "semester": "S1"}]},
        headers=auth_headers(teacher),
    )
    assert r.status_code == 400


async def test_teacher_student_list_and_dashboard(client, db):
    teacher = await make_teacher(db, classes=(("CS", "S5", ""),))
    a = await make_student(db, section="A")
    await make_student(db, section="C")
    await make_student(db, branch="ME")
    await make_activity(db, a)
    await make_activity(db, a, status=ActivityStatus.REJECTED)

    r = await client.get("/api/teacher/students", headers=auth_headers(teacher))
    assert r.json()["total"] == 2

    r = await client.get("/api/teacher/dashboard-stats", headers=auth_headers(teacher))
    body = r.json()
    assert body["total_students"] == 2
    assert body["pending_activities"] == 1
    assert body["rejected_activities"] == 1
    assert len(body["recent_activities"]) == 2


async def test_profile_update_requeues_verification(client, db):
    teacher = await make_teacher(db, classes=(("CS", "S5", ""),))
    student = await make_student(db, profile_verified=True)

    r = await client.put("/api/users/profile", json={"section": "B"}, headers=auth_headers(student))
    assert r.status_code == 200
    assert r.json()["section"] == "B"
    assert r.json()["profile_verified"] is False

    r = await client.get("/api/teacher/unverified-profiles", headers=auth_headers(teacher))
    assert [u["id"] for u in r.json()["items"]] == [student.id]

    r = await client.get("/api/notifications", headers=auth_headers(teacher))
    assert r.json()["unread_count"] == 1
    assert r.json()["items"][0]["type"] == "profile_update"

    r = await client.post(f"/api/teacher/students/{student.id}/verify-profile", headers=auth_headers(teacher))
    assert r.status_code == 200
    assert r.json()["profile_verified"] is True


async def test_send_reminder_to_low_point_students(client, db):
    teacher = await make_teacher(db, classes=(("CS", "S5", ""),))
    low = await make_student(db, total_points=5)
    await make_student(db, total_points=80)
    await make_student(db, branch="IT", total_points=0)

    r = await client.post(
        "/api/teacher/send-reminder",
        json={"subject": "Points due", "message": "Please upload", "recipient_type": "low_points"},
        headers=auth_headers(teacher),
    )
    assert r.status_code == 200
    assert r.json() == {"sent": 1}

    notes = (await db.execute(select(Notification).where(Notification.type == "reminder"))).scalars().all()
    assert [n.recipient_id for n in notes] == [low.id]


async def test_send_reminder_needs_recipients(client, db):
    teacher = await make_teacher(db)
    r = await client.post(
        "/api/teacher/send-reminder",
        json={"subject": "Hi", "message": "there"},
        headers=auth_headers(teacher),
    )
    assert r.status_code == 400


# ─────────────────────────────────────────────────────────────
# Notifications
# ─────────────────────────────────────────────────────────────
async def test_notifications_read_flow(client, db):
    teacher = await make_teacher(db)
    student = await make_student(db)
    first = await make_activity(db, student)
    second = await make_activity(db, student)
    await client.post(f"/api/activity/{first.id}/approve", json={}, headers=auth_headers(teacher))
    await client.post(f"/api/activity/{second.id}/reject", json={"reason": "blurry"}, headers=auth_headers(teacher))

    r = await client.get("/api/notifications", headers=auth_headers(student))
    body = r.json()
    assert body["total"] == 2
    assert body["unread_count"] == 2

    r = await client.put(f"/api/notifications/{body['items'][0]['id']}/read", headers=auth_headers(student))
    assert r.json()["read"] is True

    r = await client.put("/api/notifications/read-all", headers=auth_headers(student))
    assert r.json() == {"updated": 1}

    r = await client.put(f"/api/notifications/{body['items'][0]['id']}/read", headers=auth_headers(teacher))
    assert r.status_code == 404


# ─────────────────────────────────────────────────────────────
# Admin
# ─────────────────────────────────────────────────────────────
async def test_admin_rule_crud(client, db):
    admin = await make_admin(db)
    r = await client.post(
        "/api/admin/rules",
        json={"activity_type": "sports", "level": "district", "position": "first", "points": 12},
        headers=auth_headers(admin),
    )
    assert r.status_code == 201
    rule_id = r.json()["id"]

    r = await client.patch(f"/api/admin/rules/{rule_id}", json={"points": 14}, headers=auth_headers(admin))
    assert r.json()["points"] == 14

    r = await client.delete(f"/api/admin/rules/{rule_id}", headers=auth_headers(admin))
    assert r.json() == {"ok": True, "hard": False}
    r = await client.get("/api/admin/rules?active_only=true", headers=auth_headers(admin))
    assert r.json() == []

    r = await client.delete(f"/api/admin/rules/{rule_id}?hard=true", headers=auth_headers(admin))
    assert r.status_code == 200
    assert await db.get(Rule, rule_id) is None

    actions = (await db.execute(select(AuditLog.action))).scalars().all()
    assert {"rule_create", "rule_update", "rule_delete"} <= set(actions)


async def test_rules_are_admin_only(client, db):
    teacher = await make_teacher(db)
    r = await client.get("/api/admin/rules", headers=auth_headers(teacher))
    assert r.status_code == 403


async def test_admin_creates_and_deletes_users(client, db, store):
    admin = await make_admin(db)
    r = await client.post(
        "/api/admin/users",
        json={
            "full_name": "New Student",
            "email": "new@capms.test",
            "password": "secret1",
            "registration_number": "CS22B010",
            "role": "student",
            "branch": "cs",
            "semester": "s3",
        },
        headers=auth_headers(admin),
    )
    assert r.status_code == 201
    created = r.json()
    assert created["branch"] == "CS"

    r = await client.post(
        "/api/admin/users",
        json={"full_name": "Dup", "email": "new@capms.test", "password": "secret1", "role": "student", "branch": "CS"},
        headers=auth_headers(admin),
    )
    assert r.status_code == 400

    student = await db.get(User, created["id"])
    await make_activity(db, student, doc_storage_id="activity_documents/keep-me")

    r = await client.delete(f"/api/admin/users/{created['id']}", headers=auth_headers(admin))
    assert r.json() == {"ok": True, "deleted_activities": 1}
    assert "activity_documents/keep-me" in store.deleted
    remaining = (await db.execute(select(Activity).where(Activity.student_id == created["id"]))).scalars().all()
    assert remaining == []

    r = await client.delete(f"/api/admin/users/{admin.id}", headers=auth_headers(admin))
    assert r.status_code == 400


async def test_admin_stats_and_ledger_check(client, db):
    admin = await make_admin(db)
    student = await make_student(db)
    activity = await make_activity(db, student)
    await client.post(f"/api/activity/{activity.id}/approve", json={"points": 7}, headers=auth_headers(admin))

    r = await client.get("/api/admin/stats", headers=auth_headers(admin))
    body = r.json()
    assert body["total_students"] == 1
    assert body["approved_activities"] == 1
    assert body["by_type"] == [{"key": "hackathon", "count": 1}]
    assert body["top_students"][0]["total_points"] == 7

    r = await client.get(f"/api/admin/users/{student.id}/ledger-check", headers=auth_headers(admin))
    assert r.json()["consistent"] is True

    r = await client.get("/api/admin/audit-logs?action=activity_approve", headers=auth_headers(admin))
    assert r.json()["total"] == 1
