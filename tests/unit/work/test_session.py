# Copyright (c) "Neo4j"
# Neo4j Sweden AB [https://neo4j.com]
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


import asyncio
import gc
import logging

import pytest

from graphbolt.api import (
    Bookmark,
    READ_ACCESS,
    WRITE_ACCESS,
)
from graphbolt.conf import SessionConfig
from graphbolt.exceptions import (
    CypherSyntaxError,
    SessionError,
)
from graphbolt.io import (
    Bolt,
    BOLT_V1,
    BOLT_V3,
    ConnectionState,
)
from graphbolt.io._messages import (
    BEGIN,
    COMMIT,
    PULL_ALL,
    ROLLBACK,
    RUN,
)
from graphbolt.work import (
    LeakLoggingSession,
    Session,
    TransactionState,
)

from ..fixtures import (
    failure,
    fake_bolt,
    FakeProvider,
    FakeStreamWriter,
    record,
    success,
)


TX3 = "neo4j:bookmark:v1:tx3"
TX5 = "neo4j:bookmark:v1:tx5"
TX7 = "neo4j:bookmark:v1:tx7"


def auto_commit_reply(bookmark=TX5, values=(1,)):
    return (success({"fields": ["x"]})
            + record(values)
            + success({"bookmark": bookmark, "type": "rw"}))


def new_session(*scripts, **config):
    connections = [fake_bolt(script) for script in scripts]
    provider = FakeProvider(*connections)
    return Session(provider, SessionConfig(**config)), provider


@pytest.mark.asyncio
async def test_run_streams_records_and_releases_connection():
    session, provider = new_session(auto_commit_reply())
    result = await session.run("RETURN $x AS x", x=1)
    cx = session._connection
    assert provider.released == []
    values = [record["x"] async for record in result]
    assert values == [1]
    assert provider.released == [cx]
    assert session.last_bookmark() == Bookmark(TX5)


@pytest.mark.asyncio
async def test_run_sends_bookmark_and_access_mode():
    session, provider = new_session(auto_commit_reply(),
                                    bookmarks=TX3,
                                    default_access_mode=READ_ACCESS)
    result = await session.run("RETURN 1")
    await result.consume()
    cx = provider.released[0]
    assert cx._writer.messages() == [
        (RUN, ["RETURN 1", {}, {"bookmarks": [TX3], "mode": "r"}]),
        (PULL_ALL, []),
    ]
    assert provider.acquired == [READ_ACCESS]


@pytest.mark.asyncio
async def test_failed_run_keeps_bookmark_and_releases_connection():
    session, provider = new_session(
        failure("Neo.ClientError.Statement.SyntaxError", "Invalid input"),
        bookmarks=TX3,
    )
    with pytest.raises(CypherSyntaxError):
        await session.run("RETRUN 1")
    assert len(provider.released) == 1
    assert session.last_bookmark() == Bookmark(TX3)
    assert session._connection is None


@pytest.mark.asyncio
async def test_new_run_buffers_previous_result():
    session, provider = new_session(
        auto_commit_reply(TX5, (1,)),
        auto_commit_reply(TX7, (2,)),
    )
    first = await session.run("RETURN 1 AS x")
    second = await session.run("RETURN 2 AS x")
    assert provider.acquired == [WRITE_ACCESS, WRITE_ACCESS]
    assert len(provider.released) == 1
    assert [record["x"] async for record in first] == [1]
    assert [record["x"] async for record in second] == [2]
    assert len(provider.released) == 2
    assert session.last_bookmark() == Bookmark(TX7)


@pytest.mark.asyncio
async def test_concurrent_use_is_rejected():
    gate = asyncio.Event()
    session, provider = new_session(auto_commit_reply())
    acquire = provider.acquire

    async def slow_acquire(access_mode=None, timeout=None):
        await gate.wait()
        return await acquire(access_mode, timeout)

    provider.acquire = slow_acquire
    first = asyncio.ensure_future(session.run("RETURN 1"))
    await asyncio.sleep(0)
    with pytest.raises(SessionError):
        await session.run("RETURN 2")
    with pytest.raises(SessionError):
        await session.begin_transaction()
    gate.set()
    result = await first
    await result.consume()


@pytest.mark.asyncio
async def test_new_work_is_rejected_while_result_is_being_read():
    reader = asyncio.StreamReader()
    reader.feed_data(success({"fields": ["x"]}))
    cx = Bolt(("127.0.0.1", 7687), reader, FakeStreamWriter(0x1234),
              BOLT_V3, local_port=0x1234)
    cx.state = ConnectionState.READY
    provider = FakeProvider(cx)
    session = Session(provider)
    result = await session.run("RETURN 1 AS x")

    async def read_all():
        return [record["x"] async for record in result]

    reading = asyncio.ensure_future(read_all())
    await asyncio.sleep(0)
    assert result.reading()
    with pytest.raises(SessionError):
        await session.run("RETURN 2")
    with pytest.raises(SessionError):
        await session.begin_transaction()
    reader.feed_data(record([1]) + success({"bookmark": TX5}))
    assert await reading == [1]
    assert not result.reading()
    assert provider.released == [cx]
    assert session.last_bookmark() == Bookmark(TX5)


@pytest.mark.asyncio
async def test_closed_session_is_unusable():
    session, _ = new_session()
    await session.close()
    assert session.closed()
    with pytest.raises(SessionError):
        await session.run("RETURN 1")
    with pytest.raises(SessionError):
        await session.begin_transaction()


@pytest.mark.asyncio
async def test_close_consumes_unread_result():
    session, provider = new_session(auto_commit_reply())
    result = await session.run("RETURN 1")
    await session.close()
    assert result.closed()
    assert len(provider.released) == 1
    assert session.last_bookmark() == Bookmark(TX5)


# Explicit transactions


@pytest.mark.asyncio
async def test_commit_replaces_session_bookmark():
    session, provider = new_session(
        success({})
        + success({"fields": []})
        + success({})
        + success({"bookmark": TX7}),
        bookmarks=[TX3, TX5],
    )
    tx = await session.begin_transaction()
    result = await tx.run("CREATE ()")
    await result.consume()
    assert await tx.commit() == Bookmark(TX7)
    assert tx.state is TransactionState.COMMITTED
    assert session.last_bookmark() == Bookmark(TX7)
    cx, = provider.released
    assert [tag for tag, _ in cx._writer.messages()] == [
        BEGIN, RUN, PULL_ALL, COMMIT,
    ]
    assert cx._writer.messages()[0] == (BEGIN, [{"bookmarks": [TX3, TX5]}])


@pytest.mark.asyncio
async def test_next_transaction_begins_with_committed_bookmark():
    first = fake_bolt(success({}) + success({"bookmark": TX7}))
    second = fake_bolt(success({}) + success({}))
    session = Session(FakeProvider(first, second))
    tx = await session.begin_transaction()
    await tx.commit()
    tx = await session.begin_transaction()
    assert second._writer.messages() == [(BEGIN, [{"bookmarks": [TX7]}])]
    await tx.rollback()


@pytest.mark.asyncio
async def test_next_v1_transaction_begins_with_committed_bookmark():
    first = fake_bolt(success() + success()
                      + success() + success({"bookmark": TX7}),
                      protocol=BOLT_V1)
    second = fake_bolt(success() + success() + success() + success(),
                       protocol=BOLT_V1)
    session = Session(FakeProvider(first, second))
    tx = await session.begin_transaction()
    await tx.commit()
    tx = await session.begin_transaction()
    assert second._writer.messages() == [
        (RUN, ["BEGIN", {"bookmark": TX7, "bookmarks": [TX7]}]),
        (PULL_ALL, []),
    ]
    await tx.rollback()


@pytest.mark.asyncio
async def test_begin_bookmark_replaces_session_bookmark():
    session, provider = new_session(success({}) + success({}),
                                    bookmarks=TX3)
    tx = await session.begin_transaction(bookmark=TX5)
    assert session.last_bookmark() == Bookmark(TX5)
    await tx.rollback()
    assert session.last_bookmark() == Bookmark(TX5)
    cx, = provider.released
    assert cx._writer.messages()[0] == (BEGIN, [{"bookmarks": [TX5]}])


@pytest.mark.asyncio
async def test_open_transaction_blocks_other_work():
    session, _ = new_session(success({}) + success({}))
    tx = await session.begin_transaction()
    with pytest.raises(SessionError):
        await session.run("RETURN 1")
    with pytest.raises(SessionError):
        await session.begin_transaction()
    await tx.rollback()
    assert session._transaction is None


@pytest.mark.asyncio
async def test_close_rolls_back_open_transaction():
    session, provider = new_session(success({}) + success({}))
    tx = await session.begin_transaction()
    await session.close()
    assert tx.state is TransactionState.ROLLED_BACK
    cx, = provider.released
    assert [tag for tag, _ in cx._writer.messages()] == [BEGIN, ROLLBACK]
    assert session.last_bookmark() == Bookmark()


@pytest.mark.asyncio
async def test_close_after_lost_connection():
    session, provider = new_session(success({}))
    tx = await session.begin_transaction()
    await session.close()
    assert tx.state is TransactionState.FAILED
    assert session.closed()
    assert len(provider.released) == 1


def test_leaked_session_is_logged(caplog):
    loop = asyncio.new_event_loop()
    try:
        provider = FakeProvider(fake_bolt(auto_commit_reply()))
        session = LeakLoggingSession(provider, SessionConfig())
        result = loop.run_until_complete(session.run("RETURN 1"))
        with caplog.at_level(logging.ERROR, logger="graphbolt.work"):
            del session, result
            gc.collect()
    finally:
        loop.close()
    assert "Session object leaked" in caplog.text
    assert "test_leaked_session_is_logged" in caplog.text
