# tests/test_realtime.py

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from redis.asyncio import RedisError
from starlette.websockets import WebSocketDisconnect

from taskhub.core.events import (
    NOTIFICATION_NEW,
    TASK_ASSIGNED,
    TASK_UPDATED,
    EventBroadcaster,
    RedisEventBroadcaster,
    build_broadcaster,
)
from taskhub.core.websocket import ConnectionManager, user_channel
from taskhub.main import create_app
from taskhub.models import Priority, TaskStatus
from taskhub.schemas import NotificationRead, TaskRead
from taskhub.services.task_service import TaskChange

from fakes import FakeSocket


def make_change(assignee: str | None = None) -> TaskChange:
    now = datetime.now(timezone.utc)
    task = TaskRead(
        id="t1",
        title="Write report",
        description="Q3 summary",
        due_date=now + timedelta(days=1),
        priority=Priority.HIGH,
        status=TaskStatus.IN_PROGRESS,
        creator_id="alice",
        assigned_to_id=assignee,
        created_at=now,
    )
    notification = None
    if assignee:
        notification = NotificationRead(
            id="n1",
            user_id=assignee,
            message="You have been assigned to task: Write report",
            task_id="t1",
            read=False,
            created_at=now,
        )
    return TaskChange(task=task, notification=notification)


# ---- connection manager ----


async def test_broadcast_reaches_every_socket() -> None:
    manager = ConnectionManager()
    first, second = FakeSocket(), FakeSocket()
    await manager.connect(first, "alice")
    await manager.connect(second, "bob")

    await manager.broadcast({"event": "ping", "data": None})

    assert first.accepted and second.accepted
    assert first.events == second.events == ["ping"]


async def test_channel_delivery_is_private() -> None:
    manager = ConnectionManager()
    alice_phone, alice_laptop, bob = FakeSocket(), FakeSocket(), FakeSocket()
    await manager.connect(alice_phone, "alice")
    await manager.connect(alice_laptop, "alice")
    await manager.connect(bob, "bob")

    await manager.send_to_channel(user_channel("alice"), {"event": "hi", "data": None})

    assert manager.channel_size("user:alice") == 2
    assert alice_phone.events == alice_laptop.events == ["hi"]
    assert bob.sent == []


async def test_failing_socket_is_dropped_without_stopping_delivery() -> None:
    manager = ConnectionManager()
    dead, alive = FakeSocket(fail=True), FakeSocket()
    await manager.connect(dead, "alice")
    await manager.connect(alive, "bob")

    await manager.broadcast({"event": "ping", "data": None})

    assert alive.events == ["ping"]
    assert dead not in manager.active_connections
    assert manager.channel_size(user_channel("alice")) == 0


def test_disconnect_of_unknown_socket_is_harmless() -> None:
    manager = ConnectionManager()

    manager.disconnect(FakeSocket())

    assert manager.active_connections == set()


# ---- broadcaster ----


async def test_task_change_without_notification_is_only_broadcast() -> None:
    manager = ConnectionManager()
    alice, bob = FakeSocket(), FakeSocket()
    await manager.connect(alice, "alice")
    await manager.connect(bob, "bob")

    await EventBroadcaster(manager).task_changed(TASK_UPDATED, make_change())

    assert alice.events == bob.events == [TASK_UPDATED]
    payload = alice.sent[0]["data"]
    assert payload["status"] == "In Progress"
    assert payload["dueDate"].endswith("Z") or payload["dueDate"].endswith("+00:00")


async def test_task_change_with_notification_targets_assignee() -> None:
    manager = ConnectionManager()
    alice, bob = FakeSocket(), FakeSocket()
    await manager.connect(alice, "alice")
    await manager.connect(bob, "bob")

    await EventBroadcaster(manager).task_changed(TASK_UPDATED, make_change("bob"))

    assert alice.events == [TASK_UPDATED]
    assert bob.events == [TASK_UPDATED, TASK_ASSIGNED, NOTIFICATION_NEW]
    assert bob.sent[2]["data"]["taskId"] == "t1"


def test_broadcaster_choice_follows_settings(settings) -> None:
    manager = ConnectionManager()

    local = build_broadcaster(settings, manager)
    relayed = build_broadcaster(
        settings.model_copy(update={"redis_dsn": "redis://localhost:6379/0"}), manager
    )

    assert type(local) is EventBroadcaster
    assert isinstance(relayed, RedisEventBroadcaster)
    assert relayed.channel == settings.redis_channel


async def test_redis_broadcaster_delivers_locally_before_start() -> None:
    manager = ConnectionManager()
    socket = FakeSocket()
    await manager.connect(socket, "alice")
    broadcaster = RedisEventBroadcaster(manager, "redis://localhost:6379/0", "events")

    await broadcaster.publish("ping", {"n": 1})

    assert socket.sent == [{"event": "ping", "data": {"n": 1}}]


class BrokenRedis:
    async def publish(self, channel, message):
        raise RedisError("connection reset")


async def test_redis_publish_failure_falls_back_to_local_delivery(caplog) -> None:
    manager = ConnectionManager()
    socket = FakeSocket()
    await manager.connect(socket, "alice")
    broadcaster = RedisEventBroadcaster(manager, "redis://localhost:6379/0", "events")
    broadcaster._redis = BrokenRedis()

    with caplog.at_level("ERROR", logger="taskhub.core.events"):
        await broadcaster.publish("ping", {"n": 1})

    assert socket.events == ["ping"]
    record = caplog.records[-1]
    assert record.msg == "Redis PUBLISH error, delivering locally: %s"
    assert str(record.args[0]) == "connection reset"


# ---- socket endpoint ----


@pytest.fixture()
def ws_app(settings):
    # the socket endpoint never touches the database
    return create_app(settings)


def wait_for_channel(manager: ConnectionManager, channel: str, size: int) -> bool:
    deadline = time.monotonic() + 2
    while time.monotonic() < deadline:
        if manager.channel_size(channel) == size:
            return True
        time.sleep(0.01)
    return False


def test_socket_without_token_is_rejected(ws_app) -> None:
    client = TestClient(ws_app)

    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/api/v1/ws"):
            pass

    assert excinfo.value.code == 1008


def test_socket_with_bad_token_is_rejected(ws_app) -> None:
    client = TestClient(ws_app)

    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/api/v1/ws?token=garbage"):
            pass

    assert excinfo.value.code == 1008


@pytest.mark.parametrize("carrier", ["query", "bearer", "cookie"])
def test_authenticated_socket_joins_its_user_channel(ws_app, carrier) -> None:
    token = ws_app.state.tokens.create_access_token("alice")
    manager = ws_app.state.connections
    url, headers = "/api/v1/ws", {}
    if carrier == "query":
        url = f"{url}?token={token}"
    elif carrier == "bearer":
        headers["authorization"] = f"Bearer {token}"
    else:
        headers["cookie"] = f"token={token}"
    client = TestClient(ws_app)

    with client.websocket_connect(url, headers=headers) as ws:
        assert wait_for_channel(manager, "user:alice", 1)
        ws.send_text("ignored")

    assert wait_for_channel(manager, "user:alice", 0)
    assert manager.active_connections == set()
