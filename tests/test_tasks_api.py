from datetime import timedelta

from taskmanager.utils import utcnow


def test_requires_authentication(client):
    response = client.get("/api/tasks")

    assert response.status_code == 401
    assert response.json()["message"] == "Not authenticated"


def test_rejects_invalid_token(client):
    response = client.get("/api/tasks", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


def test_create_then_get_round_trip(client, alice, auth_headers):
    headers = auth_headers(alice)
    deadline = (utcnow() + timedelta(days=1)).replace(microsecond=0)

    created = client.post(
        "/api/tasks",
        json={"title": "Write tests", "description": "all of them", "deadline": deadline.isoformat()},
        headers=headers,
    )
    assert created.status_code == 201
    body = created.json()
    assert body["id"]
    assert body["title"] == "Write tests"
    assert body["priority"] == "medium"
    assert body["status"] == "pending"
    assert body["userId"] == alice.id
    assert body["createdAt"] == body["updatedAt"]

    fetched = client.get(f"/api/tasks/{body['id']}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json() == body


def test_create_accepts_timezone_aware_deadline(client, alice, auth_headers):
    response = client.post(
        "/api/tasks",
        json={"title": "Call", "deadline": "2030-01-01T12:00:00+02:00"},
        headers=auth_headers(alice),
    )

    assert response.status_code == 201
    assert response.json()["deadline"] == "2030-01-01T10:00:00Z"


def test_create_requires_title(client, alice, auth_headers):
    response = client.post("/api/tasks", json={"description": "no title"}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json()["field"] == "title"
    assert response.json()["message"]


def test_create_rejects_blank_title(client, alice, auth_headers):
    response = client.post("/api/tasks", json={"title": "   "}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json()["field"] == "title"


def test_create_rejects_unknown_priority(client, alice, auth_headers):
    response = client.post(
        "/api/tasks", json={"title": "x", "priority": "urgent"}, headers=auth_headers(alice)
    )

    assert response.status_code == 400
    assert response.json()["field"] == "priority"


def test_list_filters_and_paginates(client, alice, auth_headers):
    headers = auth_headers(alice)
    for title in ("Team Meeting", "Budget Review", "Meeting notes"):
        client.post("/api/tasks", json={"title": title}, headers=headers)

    response = client.get("/api/tasks", params={"search": "meeting", "limit": 1}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["page"] == 1
    assert body["limit"] == 1
    assert len(body["tasks"]) == 1
    assert "meeting" in body["tasks"][0]["title"].lower()


def test_list_rejects_invalid_status(client, alice, auth_headers):
    response = client.get("/api/tasks", params={"status": "archived"}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json()["field"] == "status"


def test_list_rejects_non_integer_page(client, alice, auth_headers):
    response = client.get("/api/tasks", params={"page": "first"}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json()["field"] == "page"


def test_list_rejects_huge_page(client, alice, auth_headers):
    response = client.get("/api/tasks", params={"page": str(10**19)}, headers=auth_headers(alice))

    assert response.status_code == 400
    assert response.json()["field"] == "page"


def test_other_users_tasks_are_invisible(client, alice, bob, auth_headers):
    task_id = client.post("/api/tasks", json={"title": "secret"}, headers=auth_headers(alice)).json()["id"]
    bob_headers = auth_headers(bob)

    assert client.get(f"/api/tasks/{task_id}", headers=bob_headers).status_code == 404
    assert client.get("/api/tasks", headers=bob_headers).json()["total"] == 0

    update = client.put(f"/api/tasks/{task_id}", json={"title": "mine now"}, headers=bob_headers)
    assert update.status_code == 404
    assert update.json() == {"message": "Task not found"}

    assert client.delete(f"/api/tasks/{task_id}", headers=bob_headers).status_code == 204
    still_there = client.get(f"/api/tasks/{task_id}", headers=auth_headers(alice))
    assert still_there.json()["title"] == "secret"


def test_update_is_partial(client, alice, auth_headers):
    headers = auth_headers(alice)
    created = client.post(
        "/api/tasks", json={"title": "Plan", "priority": "high"}, headers=headers
    ).json()

    response = client.put(f"/api/tasks/{created['id']}", json={"status": "in-progress"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "in-progress"
    assert body["priority"] == "high"
    assert body["title"] == "Plan"
    assert body["updatedAt"] >= created["updatedAt"]


def test_update_rejects_null_title(client, alice, auth_headers):
    headers = auth_headers(alice)
    task_id = client.post("/api/tasks", json={"title": "Plan"}, headers=headers).json()["id"]

    response = client.put(f"/api/tasks/{task_id}", json={"title": None}, headers=headers)

    assert response.status_code == 400
    assert response.json()["field"] == "title"


def test_delete_returns_204_and_is_idempotent(client, alice, auth_headers):
    headers = auth_headers(alice)
    task_id = client.post("/api/tasks", json={"title": "Temp"}, headers=headers).json()["id"]

    first = client.delete(f"/api/tasks/{task_id}", headers=headers)
    second = client.delete(f"/api/tasks/{task_id}", headers=headers)

    assert first.status_code == second.status_code == 204
    assert client.get(f"/api/tasks/{task_id}", headers=headers).status_code == 404


def test_mutations_emit_notifications(client, alice, auth_headers, mailer):
    headers = auth_headers(alice)
    task_id = client.post("/api/tasks", json={"title": "Notify me"}, headers=headers).json()["id"]
    client.put(f"/api/tasks/{task_id}", json={"status": "completed"}, headers=headers)

    notifications = client.get("/api/notifications", headers=headers).json()

    assert [n["type"] for n in notifications] == ["TASK_CREATED", "TASK_UPDATED"]
    assert all(n["taskId"] == task_id and n["userId"] == alice.id for n in notifications)
    assert notifications[1]["message"] == "Task updated: Notify me - Status: completed"
    assert [m["to"] for m in mailer.sent] == ["alice@example.com", "alice@example.com"]


def test_mail_failure_does_not_fail_the_mutation(client, alice, auth_headers, mailer):
    mailer.fail_for = ("alice@example.com",)

    response = client.post("/api/tasks", json={"title": "Still saved"}, headers=auth_headers(alice))

    assert response.status_code == 201
    assert client.get("/api/tasks", headers=auth_headers(alice)).json()["total"] == 1


def test_notifications_are_scoped_to_the_caller(client, alice, bob, auth_headers):
    client.post("/api/tasks", json={"title": "Alice only"}, headers=auth_headers(alice))

    assert client.get("/api/notifications", headers=auth_headers(bob)).json() == []
