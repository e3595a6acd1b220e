import hashlib
import hmac
import json

import pytest
from aiohttp import test_utils

from cqroute.bot import server as server_module
from cqroute.bot.server import Server, create_server
from cqroute.config.constants import COMMAND_NOT_FOUND
from cqroute.config.settings import Settings
from cqroute.core.app import App


GROUP_MESSAGE = {
    "post_type": "message",
    "message_type": "group",
    "sub_type": "normal",
    "self_id": 1000,
    "group_id": 20,
    "user_id": 10,
    "message": "hello",
}


class FakeDatabase:
    async def get_group(self, group_id):
        return {"id": group_id, "flag": "known"}


@pytest.fixture(autouse=True)
def clear_server_map():
    yield
    server_module._server_map.clear()


@pytest.fixture
def server(app):
    return Server(app)


# ---------------------------------------------------------------------------
# path assignment
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("payload, path", [
    ({"post_type": "message", "message_type": "private", "sub_type": "friend", "user_id": 10},
     "/user/10/message/friend"),
    ({"post_type": "message", "message_type": "group", "sub_type": "normal", "group_id": 20, "user_id": 10},
     "/group/20/message/normal"),
    ({"post_type": "message", "message_type": "discuss", "discuss_id": 30, "user_id": 10},
     "/discuss/30/message"),
    ({"post_type": "request", "request_type": "friend", "user_id": 10},
     "/user/10/request"),
    ({"post_type": "request", "request_type": "group", "sub_type": "add", "group_id": 20, "user_id": 10},
     "/group/20/request/add"),
    ({"post_type": "notice", "notice_type": "group_increase", "sub_type": "approve", "group_id": 20, "user_id": 10},
     "/group/20/group_increase/approve"),
    ({"post_type": "notice", "notice_type": "friend_add", "user_id": 10},
     "/user/10/friend_add"),
    ({"post_type": "meta_event", "meta_event_type": "heartbeat"},
     "/meta_event/heartbeat"),
])
async def test_add_properties_assigns_path(server, app, payload, path):
    meta = await server.dispatch(payload, app)
    await app.drain()

    assert meta.path == path


@pytest.mark.asyncio
async def test_reply_functions_follow_message_type(server, app, sender):
    private = await server.dispatch({"post_type": "message", "message_type": "private", "user_id": 10}, app)
    group = await server.dispatch(GROUP_MESSAGE, app)
    discuss = await server.dispatch({"post_type": "message", "message_type": "discuss", "discuss_id": 30}, app)
    notice = await server.dispatch({"post_type": "notice", "notice_type": "friend_add", "user_id": 10}, app)
    await app.drain()

    await private.send("a")
    await group.send("b")
    await discuss.send("c")

    assert sender.sent == [("private", 10, "a"), ("group", 20, "b"), ("discuss", 30, "c")]
    assert notice.send is None


@pytest.mark.asyncio
async def test_group_record_loaded_from_database(sender):
    app = App(settings=Settings(environment="test"), sender=sender, database=FakeDatabase())

    meta = await Server(app).dispatch(GROUP_MESSAGE, app)
    await app.drain()

    assert meta.group == {"id": 20, "flag": "known"}


# ---------------------------------------------------------------------------
# fan-out
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_emit_events_fans_out_to_matching_contexts(server, app):
    received = []

    def listen(ctx, event):
        ctx.receiver.on(event, lambda meta: received.append((ctx.path, event)))

    listen(app, "message")
    listen(app, "message/normal")
    listen(app.group(20), "message/normal")
    listen(app.groups, "message")
    listen(app.group(21), "message")
    listen(app.users, "message")

    await server.dispatch(GROUP_MESSAGE, app)
    await app.drain()

    assert received == [
        ("/", "message"),
        ("/", "message/normal"),
        ("/group/20/", "message/normal"),
        ("/group/*/", "message"),
    ]


@pytest.mark.asyncio
async def test_dispatch_failure_is_isolated(server, app, caplog):
    received = []

    def explode(meta):
        raise RuntimeError("listener failed")

    app.group(20).receiver.on("message", explode)
    app.groups.receiver.on("message", lambda meta: received.append(meta.group_id))

    assert await server.dispatch(GROUP_MESSAGE, app) is None
    assert "DISPATCH_FAILURE" in caplog.text

    meta = await server.dispatch(dict(GROUP_MESSAGE, group_id=21), app)
    assert meta is not None
    assert meta.path == "/group/21/message/normal"
    assert received == [21]
    await app.drain()


# ---------------------------------------------------------------------------
# running commands from listeners
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_run_command_awaits_bound_reply_and_sync_action(server, app, sender):
    app.command("x").action(lambda inv: "done")
    results = []

    async def on_message(meta):
        results.append(await app.run_command("x", meta))
        results.append(await app.run_command("missing", meta))

    app.group(20).receiver.on("message/normal", on_message)

    await server.dispatch(GROUP_MESSAGE, app)
    await app.drain()

    assert results == ["done", 1]
    assert sender.sent == [("group", 20, COMMAND_NOT_FOUND)]


@pytest.mark.asyncio
async def test_run_command_for_notice_without_reply(server, app, sender):
    results = []

    async def on_increase(meta):
        results.append(await app.run_command("nothing", meta))

    app.receiver.on("group_increase", on_increase)
    notice = {"post_type": "notice", "notice_type": "group_increase", "group_id": 20, "user_id": 10}

    meta = await server.dispatch(notice, app)
    await app.drain()

    assert meta.send is None
    assert results == [None]
    assert sender.sent == []


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_webhook_binds_self_id_and_routes(server, app):
    received = []
    app.group(20).receiver.on("message/normal", received.append)

    async with test_utils.TestClient(test_utils.TestServer(server.web_app)) as client:
        resp = await client.post("/", json=GROUP_MESSAGE)
        assert resp.status == 200
        await app.drain()

    assert app.self_id == 1000
    assert received[0].path == "/group/20/message/normal"
    assert received[0].message == "hello"


@pytest.mark.asyncio
async def test_webhook_rejects_unknown_self_id(sender):
    app = App(settings=Settings(environment="test", self_id=1), sender=sender)
    server = Server(app)

    async with test_utils.TestClient(test_utils.TestServer(server.web_app)) as client:
        resp = await client.post("/", json=dict(GROUP_MESSAGE, self_id=2))
        assert resp.status == 403


@pytest.mark.asyncio
async def test_webhook_rejects_invalid_json(server):
    async with test_utils.TestClient(test_utils.TestServer(server.web_app)) as client:
        resp = await client.post("/", data=b"not json")
        assert resp.status == 400
        resp = await client.post("/", json=[GROUP_MESSAGE])
        assert resp.status == 400


@pytest.mark.asyncio
async def test_webhook_signature(sender):
    app = App(settings=Settings(environment="test", secret="s3cret"), sender=sender)
    server = Server(app)
    body = json.dumps(GROUP_MESSAGE).encode()
    digest = hmac.new(b"s3cret", body, hashlib.sha1).hexdigest()
    headers = {"Content-Type": "application/json"}

    async with test_utils.TestClient(test_utils.TestServer(server.web_app)) as client:
        missing = await client.post("/", data=body, headers=headers)
        wrong = await client.post("/", data=body, headers=dict(headers, **{"X-Signature": "sha1=bad"}))
        good = await client.post("/", data=body, headers=dict(headers, **{"X-Signature": f"sha1={digest}"}))
        await app.drain()

    assert missing.status == 401
    assert wrong.status == 403
    assert good.status == 200


def test_create_server_is_shared_per_port(sender):
    first = App(settings=Settings(environment="test", port=9001), sender=sender)
    second = App(settings=Settings(environment="test", port=9001), sender=sender)
    third = App(settings=Settings(environment="test", port=9002), sender=sender)

    assert create_server(first) is create_server(second)
    assert create_server(third) is not create_server(first)
