"""Concurrent requests against a file-backed database with a real pool."""

import asyncio

from sqlmodel import select

from handyhub.db_models import Chat
from tests.conftest import hdr, post_task, register_user


async def test_exactly_one_accept_wins(file_client):
    c = file_client
    rq = await register_user(c, "requester")
    fulfillers = [await register_user(c, f"fixer-{i}", role="fulfiller") for i in range(5)]
    task = await post_task(c, rq["key"])

    responses = await asyncio.gather(
        *(c.put(f"/v1/tasks/{task['id']}/accept", headers=hdr(f["key"])) for f in fulfillers)
    )
    codes = sorted(r.status_code for r in responses)
    assert codes == [200, 400, 400, 400, 400]

    winner = next(r for r in responses if r.status_code == 200).json()["task"]["assignedTo"]
    for r in responses:
        if r.status_code == 400:
            assert r.json()["message"] == "Task is not available for acceptance"

    resp = await c.get(f"/v1/tasks/{task['id']}", headers=hdr(rq["key"]))
    assert resp.json()["task"]["assignedTo"] == winner
    assert resp.json()["task"]["status"] == "accepted"


async def test_concurrent_first_open_yields_one_chat(file_client, file_db):
    c = file_client
    rq = await register_user(c, "requester")
    task = await post_task(c, rq["key"])

    responses = await asyncio.gather(
        *(c.get(f"/v1/chat/{task['id']}/messages", headers=hdr(rq["key"])) for _ in range(5))
    )
    assert all(r.status_code == 200 for r in responses)
    assert len({r.json()["chatId"] for r in responses}) == 1

    async with file_db() as session:
        chats = (await session.execute(select(Chat).where(Chat.task_id == task["id"]))).all()
    assert len(chats) == 1
