# tests/test_heartbeat.py
# Scheduled keep-alive insert and the admin email monitoring endpoints

from midwestea.jobs.heartbeat import run_heartbeat
from midwestea.models.log import EmailLog, Log
from midwestea.services.audit_log import HEARTBEAT_MESSAGE

CRON_HEADERS = {"X-Cron-Secret": "cron-test-secret"}


# ── Heartbeat ─────────────────────────────────────────────────────────────────

def test_heartbeat_inserts_exactly_one_row(client, db):
    response = client.post("/api/cron/heartbeat", headers=CRON_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Log entry inserted successfully"}

    rows = db.query(Log).all()
    assert len(rows) == 1
    assert rows[0].action_type == "heartbeat"
    assert rows[0].message == HEARTBEAT_MESSAGE == "standard chron job to keep db active"


def test_heartbeat_rejects_wrong_secret(client, db):
    response = client.post("/api/cron/heartbeat", headers={"X-Cron-Secret": "nope"})
    assert response.status_code == 401
    assert db.query(Log).count() == 0


def test_run_heartbeat_from_job(db):
    entry = run_heartbeat(db)
    db.commit()
    assert entry.id is not None
    assert db.query(Log).filter(Log.action_type == "heartbeat").count() == 1


# ── Email Monitoring ──────────────────────────────────────────────────────────

def _email_log(success: bool, email_type: str = "course_enrollment", **kwargs) -> EmailLog:
    return EmailLog(
        recipient_email="pat@example.com",
        subject="You're enrolled: EMT Basic",
        email_type=email_type,
        success=success,
        error=None if success else "503 Service Unavailable",
        retries=0 if success else 3,
        **kwargs,
    )


def test_email_logs_filters_and_pages(client, db, admin_headers):
    db.add_all([_email_log(True), _email_log(False), _email_log(False, email_type="receipt")])
    db.commit()

    response = client.get(
        "/api/admin/email-logs",
        params={"success": "false", "limit": 1},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert len(body["logs"]) == 1
    assert body["logs"][0]["success"] is False


def test_email_metrics(client, db, admin_headers):
    db.add_all([_email_log(True), _email_log(True), _email_log(True), _email_log(False)])
    db.commit()

    response = client.get(
        "/api/admin/email-metrics",
        params={"failureRateThreshold": 20},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.json()
    metrics = body["metrics"]
    assert metrics["totalSent"] == 3
    assert metrics["totalFailed"] == 1
    assert metrics["failureRate"] == 25.0
    assert metrics["emailsByType"]["course_enrollment"] == {"sent": 3, "failed": 1}
    assert len(metrics["recentFailures"]) == 1

    alerts = body["alerts"]
    assert alerts["needsAlert"] is True
    assert alerts["threshold"] == 20
    assert "timestamp" in body


def test_retry_without_sendgrid_key(client, db, admin_headers):
    failed = _email_log(False)
    db.add(failed)
    db.commit()

    response = client.post(f"/api/admin/email-logs/{failed.id}/retry", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"] == "SendGrid API key not configured"


def test_email_monitoring_requires_admin(client, non_admin_headers):
    response = client.get("/api/admin/email-logs", headers=non_admin_headers)
    assert response.status_code == 403
