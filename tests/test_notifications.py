from unittest.mock import AsyncMock, patch

from handyhub.services.notifications import transition_notices
from tests.conftest import hdr, post_task


async def test_accept_notifies_requester(trio):
    c = trio["client"]
    rq, fx = trio["requester"], trio["fulfiller"]
    task = await post_task(c, rq["key"])

    email = AsyncMock(return_value=True)
    with patch("handyhub.services.notifications.send_email", email):
        resp = await c.put(f"/v1/tasks/{task['id']}/accept", headers=hdr(fx["key"]))
    assert resp.status_code == 200

    email.assert_awaited_once()
    assert email.await_args.args[0] == "rita@example.com"
    assert email.await_args.args[1] == "Task Accepted"

    resp = await c.get("/v1/notifications", headers=hdr(rq["key"]))
    notes = resp.json()["notifications"]
    assert len(notes) == 1
    assert notes[0]["message"] == 'Your task "Fix leaking kitchen tap" was accepted by Fred Fixer.'
    assert notes[0]["read"] is False

    resp = await c.get("/v1/notifications", headers=hdr(fx["key"]))
    assert resp.json()["notifications"] == []


async def test_notification_failure_does_not_undo_accept(trio):
    c = trio["client"]
    rq, fx = trio["requester"], trio["fulfiller"]
    task = await post_task(c, rq["key"])

    broken = AsyncMock(side_effect=RuntimeError("store down"))
    with patch("handyhub.services.notifications.create_notification", broken):
        resp = await c.put(f"/v1/tasks/{task['id']}/accept", headers=hdr(fx["key"]))
    assert resp.status_code == 200

    resp = await c.get(f"/v1/tasks/{task['id']}", headers=hdr(rq["key"]))
    assert resp.json()["task"]["status"] == "accepted"
    assert resp.json()["task"]["assignedTo"] == fx["id"]


async def test_cancel_notifies_other_party(trio):
    c = trio["client"]
    rq, fx = trio["requester"], trio["fulfiller"]
    task = await post_task(c, rq["key"])
    await c.put(f"/v1/tasks/{task['id']}/accept", headers=hdr(fx["key"]))
    await c.put(
        f"/v1/tasks/{task['id']}/status", headers=hdr(rq["key"]), json={"status": "cancelled"}
    )

    resp = await c.get("/v1/notifications", headers=hdr(fx["key"]))
    notes = resp.json()["notifications"]
    assert [n["message"] for n in notes] == [
        'Task "Fix leaking kitchen tap" was cancelled by the requester.'
    ]


async def test_mark_read(trio):
    c = trio["client"]
    rq, fx = trio["requester"], trio["fulfiller"]
    for title in ("One", "Two"):
        task = await post_task(c, rq["key"], title=title)
        await c.put(f"/v1/tasks/{task['id']}/accept", headers=hdr(fx["key"]))

    notes = (await c.get("/v1/notifications", headers=hdr(rq["key"]))).json()["notifications"]
    assert len(notes) == 2

    resp = await c.put(f"/v1/notifications/{notes[0]['id']}/read", headers=hdr(fx["key"]))
    assert resp.status_code == 404

    resp = await c.put(f"/v1/notifications/{notes[0]['id']}/read", headers=hdr(rq["key"]))
    assert resp.status_code == 200
    assert resp.json()["notification"]["read"] is True

    resp = await c.put("/v1/notifications/read-all", headers=hdr(rq["key"]))
    assert resp.json()["updated"] == 1

    notes = (await c.get("/v1/notifications", headers=hdr(rq["key"]))).json()["notifications"]
    assert all(n["read"] for n in notes)


def test_no_notice_for_start():
    from handyhub.db_models import Task, TaskStatus, User

    task = Task(
        id="tk_1",
        title="t",
        description="d",
        min_budget=1,
        max_budget=2,
        date=None,
        category="c",
        created_by="us_rq",
        assigned_to="us_fx",
        status=TaskStatus.in_progress,
    )
    actor = User(id="us_fx", name="Fred", key_hash="", key_fingerprint="")
    assert transition_notices(task, actor) == []
