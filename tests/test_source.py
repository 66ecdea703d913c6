"""web3 event source: cursor handling, range chunking, failure surfacing."""

from __future__ import annotations

import pytest

from bt_intercomm.chain.source import Web3EventSource
from bt_intercomm.errors import SubscriptionError

from tests.conftest import OPENST_UTILITY
from tests.factories import make_log, make_uuid


class _ProposedFilter:
    def __init__(self, chain):
        self._chain = chain

    async def get_logs(self, from_block, to_block):
        self._chain.ranges.append((from_block, to_block))
        if self._chain.fail:
            raise ConnectionError("websocket closed")
        if from_block in self._chain.fail_once:
            self._chain.fail_once.discard(from_block)
            raise ConnectionError("upstream timeout")
        return [log for log in self._chain.logs if from_block <= log["blockNumber"] <= to_block]


class _Events:
    def __init__(self, chain):
        self._chain = chain

    def ProposedBrandedToken(self):
        return _ProposedFilter(self._chain)


class _Contract:
    def __init__(self, chain):
        self.events = _Events(chain)


class FakeChain:
    def __init__(self, head=0, logs=None):
        self.head = head
        self.logs = logs or []
        self.ranges: list[tuple[int, int]] = []
        self.fail = False
        self.fail_once: set[int] = set()

    def contract(self, address, abi):
        return _Contract(self)

    @property
    def block_number(self):
        async def _head():
            if self.fail:
                raise ConnectionError("websocket closed")
            return self.head
        return _head()


class FakeWeb3:
    def __init__(self, chain):
        self.eth = chain


def _source(chain, **kwargs) -> Web3EventSource:
    return Web3EventSource("http://unused", OPENST_UTILITY, w3=FakeWeb3(chain), **kwargs)


async def test_first_poll_starts_at_head():
    chain = FakeChain(head=500, logs=[make_log(block_number=499), make_log(block_number=500)])
    source = _source(chain)

    events = await source.poll()
    assert [e.block_number for e in events] == [500]
    assert source.cursor == 500


async def test_start_block_and_cursor_advance():
    chain = FakeChain(head=105, logs=[
        make_log(block_number=101, _uuid=make_uuid(1)),
        make_log(block_number=104, _uuid=make_uuid(2)),
    ])
    source = _source(chain, start_block=100)

    events = await source.poll()
    assert [e.uuid for e in events] == [make_uuid(1), make_uuid(2)]
    assert source.cursor == 105

    chain.head = 110
    chain.logs.append(make_log(block_number=108, _uuid=make_uuid(3)))
    events = await source.poll()
    assert [e.uuid for e in events] == [make_uuid(3)]
    assert chain.ranges[-1] == (106, 110)


async def test_large_ranges_are_chunked():
    chain = FakeChain(head=2500)
    source = _source(chain, start_block=0, max_block_range=1000)

    await source.poll()
    assert chain.ranges == [(0, 999), (1000, 1999), (2000, 2500)]


async def test_restored_cursor_resumes_after_it():
    chain = FakeChain(head=50)
    source = _source(chain, start_block=0)
    source.set_cursor(40)

    await source.poll()
    assert chain.ranges == [(41, 50)]


async def test_malformed_log_is_skipped():
    chain = FakeChain(head=10, logs=[
        make_log(block_number=9, _conversionRate=0),
        make_log(block_number=10),
    ])
    events = await _source(chain, start_block=0).poll()
    assert [e.block_number for e in events] == [10]


async def test_transport_failure_raises_subscription_error():
    chain = FakeChain(head=10)
    source = _source(chain, start_block=0)
    chain.fail = True

    with pytest.raises(SubscriptionError):
        await source.latest_block()
    with pytest.raises(SubscriptionError):
        await source.poll(to_block=10)
    assert source.cursor is None


async def test_failed_chunk_keeps_earlier_chunk_events():
    chain = FakeChain(head=1500, logs=[make_log(block_number=500, _uuid=make_uuid(7))])
    chain.fail_once.add(1000)
    source = _source(chain, start_block=0, max_block_range=1000)

    with pytest.raises(SubscriptionError):
        await source.poll()
    assert source.cursor is None

    events = await source.poll()
    assert [e.uuid for e in events] == [make_uuid(7)]
    assert source.cursor == 1500
    assert chain.ranges == [(0, 999), (1000, 1500), (0, 999), (1000, 1500)]


async def test_failed_chunk_leaves_restored_cursor_in_place():
    chain = FakeChain(head=2100, logs=[make_log(block_number=1200, _uuid=make_uuid(8))])
    chain.fail_once.add(2100)
    source = _source(chain, max_block_range=1000)
    source.set_cursor(1099)

    with pytest.raises(SubscriptionError):
        await source.poll()
    assert source.cursor == 1099

    events = await source.poll()
    assert [e.block_number for e in events] == [1200]
    assert source.cursor == 2100
