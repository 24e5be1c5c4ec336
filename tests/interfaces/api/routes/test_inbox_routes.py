"""Integration tests for the user inbox and preference endpoints."""

from app.domain.entities import NotificationEvent


def _notify(service, user_ids, event_type="ANNOUNCEMENT", title="Maintenance"):
    service.dispatch(
        NotificationEvent.create(
            event_type=event_type,
            target_user_ids=user_ids,
            title=title,
            content="Scheduled downtime tonight",
            skip_email=True,
        )
    )


def test_inbox_listing_and_read_flow(client, service, make_user, auth_headers):
    owner = make_user("Owner", "owner@example.com")
    other = make_user("Other", "other@example.com")
    _notify(service, [owner.id, other.id])
    _notify(service, [owner.id], event_type="MEETING_INVITED", title="Invite")
    headers = auth_headers(owner)

    listing = client.get("/inbox", headers=headers)
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 2
    assert body["unreadCount"] == 2
    assert {item["category"] for item in body["items"]} == {"SYSTEM", "MEETING"}
    item_id = body["items"][0]["id"]

    other_item_id = client.get("/inbox", headers=auth_headers(other)).json()["items"][0]["id"]
    assert client.get(f"/inbox/{other_item_id}", headers=headers).status_code == 404

    read = client.post(f"/inbox/{item_id}/read", headers=headers)
    assert read.status_code == 200
    assert read.json()["isRead"] is True

    counts = client.get("/inbox/unread-count", headers=headers).json()
    assert counts["total"] == 1
    assert counts["byCategory"]["SYSTEM"] + counts["byCategory"]["MEETING"] == 1

    unread = client.get("/inbox", params={"unread": "true"}, headers=headers).json()
    assert unread["total"] == 1

    batch = client.post(
        "/inbox/read-batch", json={"ids": [other_item_id, item_id]}, headers=headers
    )
    assert batch.json() == {"updated": 0}

    read_all = client.post("/inbox/read-all", headers=headers)
    assert read_all.json() == {"updated": 1}
    assert client.get("/inbox/unread-count", headers=headers).json()["total"] == 0


def test_preferences_round_trip(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    defaults = client.get("/inbox/preferences", headers=headers)
    assert defaults.status_code == 200
    assert defaults.json()["emailEnabled"] is True
    assert defaults.json()["dmEmailMode"] == "BATCHED"

    updated = client.put(
        "/inbox/preferences",
        json={"dmEmailMode": "IMMEDIATE", "emailEnabled": False},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["dmEmailMode"] == "IMMEDIATE"
    assert updated.json()["communityEmailMode"] == "BATCHED"
    assert updated.json()["emailEnabled"] is False

    invalid = client.put(
        "/inbox/preferences", json={"dmEmailMode": "HOURLY"}, headers=headers
    )
    assert invalid.status_code == 422


def test_inactive_users_are_rejected(client, make_user, auth_headers):
    user = make_user(is_active=False)

    response = client.get("/inbox", headers=auth_headers(user))

    assert response.status_code == 400
