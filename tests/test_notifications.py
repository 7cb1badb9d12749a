# tests/test_notifications.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from taskhub.core.errors import NotFoundError
from taskhub.repositories.notification_repository import NotificationRepository

from fakes import register, task_payload


async def test_notifications_are_listed_newest_first(notification_service, users) -> None:
    for i in range(3):
        await notification_service.create_notification(users.a, f"message {i}")

    notes = await notification_service.get_user_notifications(users.a)

    assert [n.message for n in notes] == ["message 2", "message 1", "message 0"]
    assert await notification_service.get_user_notifications(users.b) == []


async def test_mark_as_read_requires_ownership(notification_service, users) -> None:
    note = await notification_service.create_notification(users.a, "hello")

    with pytest.raises(NotFoundError):
        await notification_service.mark_as_read(note.id, users.b)
    assert (await notification_service.get_user_notifications(users.a))[0].read is False

    read = await notification_service.mark_as_read(note.id, users.a)
    assert read.read is True


async def test_delete_requires_ownership(notification_service, users) -> None:
    note = await notification_service.create_notification(users.a, "hello")

    with pytest.raises(NotFoundError):
        await notification_service.delete_notification(note.id, users.b)
    with pytest.raises(NotFoundError):
        await notification_service.delete_notification("missing", users.a)

    await notification_service.delete_notification(note.id, users.a)
    assert await notification_service.get_user_notifications(users.a) == []


async def test_delete_all_is_idempotent_and_scoped(notification_service, users) -> None:
    await notification_service.create_notification(users.a, "one")
    await notification_service.create_notification(users.a, "two")
    await notification_service.create_notification(users.b, "bob's")

    assert await notification_service.delete_all_notifications(users.a) == 2
    assert await notification_service.delete_all_notifications(users.a) == 0
    assert len(await notification_service.get_user_notifications(users.b)) == 1


async def test_purge_read_only_removes_old_read_notifications(
    notification_service, session, users
) -> None:
    repo = NotificationRepository(session)
    old_read = await repo.create(user_id=users.a, message="old read")
    old_unread = await repo.create(user_id=users.a, message="old unread")
    fresh_read = await repo.create(user_id=users.a, message="fresh read")
    long_ago = datetime.now(timezone.utc) - timedelta(days=45)
    for note in (old_read, old_unread):
        note.created_at = long_ago
    for note in (old_read, fresh_read):
        note.read = True
    await session.commit()

    deleted = await notification_service.purge_read(users.a, days_old=30)

    assert deleted == 1
    remaining = {n.message for n in await notification_service.get_user_notifications(users.a)}
    assert remaining == {"old unread", "fresh read"}


async def test_notification_endpoints(client) -> None:
    _, alice_auth = await register(client, "alice@example.com", "Alice")
    bob, bob_auth = await register(client, "bob@example.com", "Bob")
    for title in ("first", "second"):
        await client.post(
            "/tasks", json=task_payload(title, assignedToId=bob["id"]), headers=alice_auth
        )

    notes = (await client.get("/notifications", headers=bob_auth)).json()["notifications"]
    assert [n["message"] for n in notes] == [
        "You have been assigned a new task: second",
        "You have been assigned a new task: first",
    ]

    # Alice cannot touch Bob's notifications
    assert (
        await client.patch(f"/notifications/{notes[0]['id']}/read", headers=alice_auth)
    ).status_code == 404
    assert (
        await client.delete(f"/notifications/{notes[0]['id']}", headers=alice_auth)
    ).status_code == 404

    read = await client.patch(f"/notifications/{notes[0]['id']}/read", headers=bob_auth)
    assert read.status_code == 200
    assert read.json()["notification"]["read"] is True

    deleted = await client.delete(f"/notifications/{notes[1]['id']}", headers=bob_auth)
    assert deleted.status_code == 204

    purge = await client.delete(
        "/notifications/read", params={"olderThanDays": 0}, headers=bob_auth
    )
    assert purge.status_code == 200
    assert purge.json() == {"deleted": 1}

    cleared = await client.delete("/notifications", headers=bob_auth)
    assert cleared.status_code == 204
    assert (await client.get("/notifications", headers=bob_auth)).json() == {"notifications": []}
