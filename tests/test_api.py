"""HTTP surface: routing, actor headers and error mapping."""

import pytest


async def create(client, headers, **overrides):
    body = {
        "property_id": "propertyA",
        "title": "Lift stuck on floor 2",
        "description": "Doors will not open",
        "category": "electrical",
        "priority": "high",
    }
    body.update(overrides)
    return await client.post("/tickets", json=body, headers=headers)


@pytest.mark.asyncio
async def test_health_reports_backend(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["store"] == "memory"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_create_and_fetch_ticket(client, as_user):
    response = await create(client, as_user("tenant-1"))

    assert response.status_code == 201
    ticket = response.json()
    assert ticket["status"] == "assigned"
    assert ticket["assignee_id"] == "res-1"

    fetched = await client.get(f"/tickets/{ticket['id']}", headers=as_user("res-1"))
    assert fetched.status_code == 200
    assert fetched.json()["display_code"] == ticket["display_code"]


@pytest.mark.asyncio
async def test_create_outside_own_property_is_forbidden(client, as_user):
    response = await create(client, as_user("tenant-1"), property_id="propertyB")

    assert response.status_code == 403
    assert response.json()["error"] == "PermissionDeniedException"


@pytest.mark.asyncio
async def test_actor_headers_are_required_and_validated(client):
    assert (await client.get("/notifications")).status_code == 422

    unknown = await client.get("/notifications", headers={"X-Actor-Id": "x", "X-Actor-Role": "janitor"})
    assert unknown.status_code == 422
    assert unknown.json()["error"] == "ValidationException"

    system = await client.get("/notifications", headers={"X-Actor-Id": "x", "X-Actor-Role": "system"})
    assert system.status_code == 403


@pytest.mark.asyncio
async def test_invalid_transition_is_conflict(client, as_user):
    ticket = (await create(client, as_user("tenant-1"))).json()

    response = await client.patch(
        f"/tickets/{ticket['id']}", json={"status": "in_progress"}, headers=as_user("tenant-1")
    )

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "TransitionDeniedException"
    assert body["retryable"] is False
    assert body["correlation_id"]


@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_patch_walks_the_lifecycle(client, as_user, clock):
    ticket = (await create(client, as_user("tenant-1"))).json()
    url = f"/tickets/{ticket['id']}"

    clock.advance(minutes=5)
    assert (await client.patch(url, json={"status": "in_progress"}, headers=as_user("res-1"))).status_code == 200
    clock.advance(minutes=5)
    paused = await client.patch(url, json={"status": "paused", "reason": "waiting for engineer"}, headers=as_user("res-1"))
    assert paused.json()["sla_paused"] is True

    sla = await client.get(f"/sla/tickets/{ticket['id']}", headers=as_user("admin-1"))
    assert sla.status_code == 200
    assert sla.json()["sla"]["state"] == "paused"

    activity = await client.get(f"{url}/activity", headers=as_user("admin-1"))
    assert [a["action"] for a in activity.json()["activity"]][-1] == "status_changed"


@pytest.mark.asyncio
async def test_patch_rejects_empty_body(client, as_user):
    ticket = (await create(client, as_user("tenant-1"))).json()

    response = await client.patch(f"/tickets/{ticket['id']}", json={}, headers=as_user("tenant-1"))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_ticket_is_not_found(client, as_user):
    response = await client.get("/tickets/missing", headers=as_user("admin-1"))
    assert response.status_code == 404
    assert response.json()["error"] == "ResourceNotFoundException"


@pytest.mark.asyncio
async def test_delete_then_fetch(client, as_user):
    ticket = (await create(client, as_user("tenant-1"))).json()

    deleted = await client.delete(f"/tickets/{ticket['id']}", headers=as_user("admin-1"))
    assert deleted.json() == {"ticket_id": ticket["id"], "hard": False, "deleted": True}

    assert (await client.get(f"/tickets/{ticket['id']}", headers=as_user("admin-1"))).status_code == 404

    forbidden = await client.delete(f"/tickets/{ticket['id']}?hard=true", headers=as_user("admin-1"))
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_export_as_csv(client, as_user):
    await create(client, as_user("tenant-1"))

    response = await client.get(
        "/tickets/export",
        params={"start": "2024-01-01T00:00:00+00:00", "end": "2024-01-31T00:00:00+00:00", "format": "csv"},
        headers=as_user("admin-1"),
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "tickets_20240101_20240131.csv" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("display_code,")
    assert len(lines) == 2


@pytest.mark.asyncio
async def test_export_window_must_be_ordered(client, as_user):
    response = await client.get(
        "/tickets/export",
        params={"start": "2024-02-01T00:00:00+00:00", "end": "2024-01-01T00:00:00+00:00"},
        headers=as_user("admin-1"),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "ValidationException"
    assert body["details"]["errors"][0]["msg"] == "Value error, end cannot be before start"


@pytest.mark.asyncio
async def test_shift_toggle_and_status(client, as_user):
    check_in = {"property_id": "propertyA", "action": "check_in"}

    first = await client.post("/shifts", json=check_in, headers=as_user("res-2"))
    assert first.json() == {"is_checked_in": True, "message": "Shift started successfully"}

    again = await client.post("/shifts", json=check_in, headers=as_user("res-2"))
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyCheckedInException"

    status = await client.get("/shifts/status", params={"property_id": "propertyA"}, headers=as_user("res-2"))
    assert status.json()["is_checked_in"] is True


@pytest.mark.asyncio
@pytest.mark.usefixtures("on_shift")
async def test_notifications_read_flow(client, as_user):
    await create(client, as_user("tenant-1"))

    listed = await client.get("/notifications", headers=as_user("res-1"))
    body = listed.json()
    assert body["unread_count"] == 1
    notification_id = body["notifications"][0]["id"]

    for _ in range(2):
        read = await client.post(f"/notifications/{notification_id}/read", headers=as_user("res-1"))
        assert read.status_code == 200
        assert read.json()["is_read"] is True

    assert (await client.post("/notifications/read-all", headers=as_user("res-1"))).json() == {
        "updated": 0,
        "unread_count": 0,
    }


@pytest.mark.asyncio
async def test_dispatch_routes(client, as_user):
    ticket = (await create(client, as_user("tenant-1"), category="security")).json()
    assert ticket["status"] == "open"

    candidates = await client.get(f"/dispatch/tickets/{ticket['id']}/candidates", headers=as_user("admin-1"))
    assert candidates.json() == {"ticket_id": ticket["id"], "candidates": []}

    waitlist = await client.post("/dispatch/properties/propertyA/waitlist", headers=as_user("admin-1"))
    assert waitlist.json() == {"property_id": "propertyA", "assigned": 0, "remaining": 0}

    denied = await client.post("/dispatch/properties/propertyA/waitlist", headers=as_user("res-1"))
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_dashboard_defaults_to_role_view(client, as_user):
    await create(client, as_user("tenant-1"))

    tenant = await client.get("/dashboard", headers=as_user("tenant-1"))
    assert tenant.json()["navigation"]["view"] == "tenant"
    assert len(tenant.json()["data"]["tickets"]) == 1

    admin = await client.get(
        "/dashboard", params={"tab": "all", "property_id": "propertyA"}, headers=as_user("admin-1")
    )
    assert admin.status_code == 200
    assert admin.json()["query"] == "view=admin&tab=all&property_id=propertyA"

    bad = await client.get("/dashboard", params={"view": "kiosk"}, headers=as_user("admin-1"))
    assert bad.status_code == 422


@pytest.mark.asyncio
async def test_sla_dashboard_requires_watcher(client, as_user):
    await create(client, as_user("tenant-1"))

    ok = await client.get("/sla/dashboard", headers=as_user("admin-1"))
    assert ok.status_code == 200
    assert ok.json()["total_count"] == 1

    assert (await client.get("/sla/dashboard", headers=as_user("tenant-1"))).status_code == 403


@pytest.mark.asyncio
async def test_comment_routes(client, as_user):
    ticket = (await create(client, as_user("tenant-1"))).json()
    url = f"/tickets/{ticket['id']}/comments"

    posted = await client.post(url, json={"body": "Lights still out"}, headers=as_user("tenant-1"))
    assert posted.status_code == 201
    assert posted.json()["author_id"] == "tenant-1"
    await client.post(url, json={"body": "Parts ordered", "is_internal": True}, headers=as_user("admin-1"))

    tenant = await client.get(url, headers=as_user("tenant-1"))
    assert [c["body"] for c in tenant.json()["comments"]] == ["Lights still out"]
    admin = await client.get(url, headers=as_user("admin-1"))
    assert len(admin.json()["comments"]) == 2

    assert (await client.post(url, json={"body": ""}, headers=as_user("tenant-1"))).status_code == 422
