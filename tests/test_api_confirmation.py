"""Hub handshake: subscribe/unsubscribe confirmations and denials."""
from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from websub_service.services.dependencies import STORE_KEY

from tests.utils import callback_path_for, make_subscription


@pytest.fixture
def store(service_client):
    return service_client.server.app[STORE_KEY]


async def confirm(service_client, topic="video.change", **params):
    query = {"hub.topic": topic, **{f"hub.{key}": value for key, value in params.items()}}
    return await service_client.get(callback_path_for(topic), params=query)


async def test_subscribe_confirmation_echoes_challenge(service_client, store):
    await store.save("video.change", make_subscription(lease=timedelta(hours=2)))

    resp = await confirm(service_client, mode="subscribe", challenge="abc123", lease="3600")

    assert resp.status == 200
    assert await resp.text() == "abc123"
    assert (await store.get("video.change")).lease == timedelta(seconds=3600)


async def test_subscribe_confirmation_accepts_lease_seconds(service_client, store):
    await store.save("video.change", make_subscription())

    resp = await confirm(service_client, mode="subscribe", challenge="xyz", lease_seconds="120")

    assert resp.status == 200
    assert (await store.get("video.change")).lease == timedelta(seconds=120)


async def test_subscribe_confirmation_without_challenge(service_client, store):
    subscription = make_subscription(lease=timedelta(hours=2))
    await store.save("video.change", subscription)

    resp = await confirm(service_client, mode="subscribe", lease="3600")

    assert resp.status == 400
    assert await store.get("video.change") == subscription


@pytest.mark.parametrize(
    "lease",
    ["", "abc", "0", "-5", "1.5", "1_000", " 3600 ", "\u0663\u0660", "100000000000000000", "9" * 5000],
)
async def test_subscribe_confirmation_with_invalid_lease(service_client, store, lease):
    subscription = make_subscription(lease=timedelta(hours=2))
    await store.save("video.change", subscription)

    resp = await confirm(service_client, mode="subscribe", challenge="abc", lease=lease)

    assert resp.status == 400
    assert await resp.text() == "invalid lease"
    assert await store.get("video.change") == subscription


async def test_subscribe_confirmation_accepts_signed_lease(service_client, store):
    await store.save("video.change", make_subscription(lease=timedelta(hours=2)))

    resp = await confirm(service_client, mode="subscribe", challenge="abc", lease="+90")

    assert resp.status == 200
    assert (await store.get("video.change")).lease == timedelta(seconds=90)


async def test_subscribe_confirmation_for_unknown_topic(service_client, store):
    resp = await confirm(service_client, mode="subscribe", challenge="abc", lease="3600")

    assert resp.status == 404
    assert await store.get("video.change") is None


async def test_denied_invokes_callback_and_removes_subscription(service_client, store):
    on_denied = Mock()
    await store.save("video.change", make_subscription(on_denied=on_denied))

    resp = await confirm(service_client, mode="denied", reason="unauthorized")

    assert resp.status == 200
    on_denied.assert_called_once_with("unauthorized")
    assert await store.get("video.change") is None


async def test_denied_without_reason(service_client, store):
    on_denied = Mock()
    await store.save("video.change", make_subscription(on_denied=on_denied))

    resp = await confirm(service_client, mode="denied")

    assert resp.status == 200
    on_denied.assert_called_once_with("")


async def test_denied_callback_failure_still_removes_subscription(service_client, store):
    await store.save("video.change", make_subscription(on_denied=Mock(side_effect=RuntimeError)))

    resp = await confirm(service_client, mode="denied", reason="gone")

    assert resp.status == 200
    assert await store.get("video.change") is None


async def test_denied_for_unknown_topic(service_client):
    resp = await confirm(service_client, mode="denied", reason="unauthorized")
    assert resp.status == 404


async def test_unsubscribe_confirmation_deletes_and_echoes(service_client, store):
    await store.save("video.change", make_subscription())

    resp = await confirm(service_client, mode="unsubscribe", challenge="bye")

    assert resp.status == 200
    assert await resp.text() == "bye"
    assert await store.get("video.change") is None


async def test_unsubscribe_confirmation_for_unknown_topic(service_client):
    resp = await confirm(service_client, mode="unsubscribe", challenge="bye")

    assert resp.status == 200
    assert await resp.text() == "bye"


async def test_unsubscribe_confirmation_without_challenge_still_deletes(service_client, store):
    await store.save("video.change", make_subscription())

    resp = await confirm(service_client, mode="unsubscribe")

    assert resp.status == 400
    assert await store.get("video.change") is None


async def test_missing_topic(service_client):
    resp = await service_client.get(
        callback_path_for("video.change"),
        params={"hub.mode": "subscribe", "hub.challenge": "abc", "hub.lease": "10"},
    )
    assert resp.status == 400
    assert "hub.topic" in await resp.text()


async def test_missing_mode(service_client):
    resp = await service_client.get(callback_path_for("video.change"), params={"hub.topic": "video.change"})
    assert resp.status == 400
    assert "hub.mode" in await resp.text()


async def test_unknown_mode(service_client, store):
    await store.save("video.change", make_subscription())

    resp = await confirm(service_client, mode="publish", challenge="abc")

    assert resp.status == 400
    assert await store.get("video.change") is not None


async def test_storage_failure_maps_to_500(service_client, store, monkeypatch):
    monkeypatch.setattr(store, "set_lease", AsyncMock(side_effect=RuntimeError("backend down")))

    resp = await confirm(service_client, mode="subscribe", challenge="abc", lease="3600")

    assert resp.status == 500
    assert "backend down" not in await resp.text()
