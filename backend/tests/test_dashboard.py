import asyncio
import json

import httpx
import pytest

from app.dashboard import DonationDashboard, HttpDonationSource, backoff_delay
from app.errors import FeedError


def row(id, cause='education', amount='10'):
    return {'id': id, 'cause': cause, 'amount': amount, 'donor_name': f'd{id}',
            'created_at': '2025-10-19T11:59:30+00:00'}


class FakeSource:
    """Scripted snapshots and streams; a stream item that is an exception is raised"""

    def __init__(self, snapshots, streams):
        self.snapshots = list(snapshots)
        self.streams = list(streams)
        self.fetches = 0
        self.subscribed_after = []

    async def fetch_rows(self, cause=None):
        self.fetches += 1
        if len(self.snapshots) > 1:
            return self.snapshots.pop(0)
        return self.snapshots[0]

    async def events(self, after, cause=None):
        self.subscribed_after.append(after)
        script = self.streams.pop(0) if self.streams else []
        for item in script:
            if isinstance(item, Exception):
                raise item
            yield item
        # stay connected until cancelled
        await asyncio.Event().wait()


async def wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError('condition not reached')
        await asyncio.sleep(0.001)


def test_backoff_delay():
    assert [backoff_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]
    assert backoff_delay(10) == 30.0


def test_snapshot_then_subscribe_from_cursor():
    source = FakeSource([[row(1), row(2, 'healthcare', '30'), row(3)]], [[row(2, 'healthcare', '30'), row(4, amount='20')]])
    updates = []
    dashboard = DonationDashboard(source, on_update=lambda totals, event: updates.append(event))

    async def scenario():
        dashboard.start()
        await wait_for(lambda: dashboard.totals is not None and dashboard.totals.count == 4)
        await dashboard.stop()

    asyncio.run(scenario())
    assert source.subscribed_after == [3]
    assert str(dashboard.totals.for_cause('education')) == '40'
    assert str(dashboard.totals.for_cause('healthcare')) == '30'
    # snapshot, then only the genuinely new event
    assert updates[0] is None and [u['id'] for u in updates[1:]] == [4]
    assert dashboard.recent[0]['id'] == 4


def test_reconnect_resnapshots_after_drop():
    source = FakeSource(
        snapshots=[[row(1), row(2)], [row(1), row(2), row(3), row(4)]],
        streams=[[row(3), FeedError('connection reset')], [row(4), row(5)]],
    )
    delays = []

    async def fake_sleep(d):
        delays.append(d)

    dashboard = DonationDashboard(source, sleep=fake_sleep)

    async def scenario():
        dashboard.start()
        await wait_for(lambda: dashboard.totals is not None and 5 in dashboard.totals.seen_ids)
        await dashboard.stop()

    asyncio.run(scenario())
    assert source.fetches == 2
    assert source.subscribed_after == [2, 4]
    assert delays == [0.5]
    assert dashboard.reconnects == 1
    assert dashboard.totals.count == 5
    assert str(dashboard.totals.total) == '50'


def test_gives_up_after_max_retries():
    source = FakeSource([[row(1)]], [[FeedError('down')]] * 3)
    delays = []

    async def fake_sleep(d):
        delays.append(d)

    dashboard = DonationDashboard(source, max_retries=2, sleep=fake_sleep)
    with pytest.raises(FeedError):
        asyncio.run(dashboard.run())
    assert delays == [0.5, 1.0]


def test_stop_tears_down_subscription():
    source = FakeSource([[row(1)]], [[]])
    dashboard = DonationDashboard(source)

    async def scenario():
        task = dashboard.start()
        await wait_for(lambda: source.subscribed_after == [1])
        await dashboard.stop()
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()


def test_http_source_reads_snapshot_and_sse():
    body = (
        'retry: 3000\n\n'
        ': keepalive\n\n'
        f"id: 4\nevent: donation\ndata: {json.dumps(row(4))}\n\n"
        f"id: 5\nevent: donation\ndata: {json.dumps(row(5))}\n\n"
    )
    seen_params = {}

    def handler(request):
        if request.url.path.endswith('/stream'):
            seen_params.update(request.url.params)
            return httpx.Response(200, text=body, headers={'content-type': 'text/event-stream'})
        return httpx.Response(200, json=[row(1), row(2)])

    async def scenario():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        source = HttpDonationSource('http://testserver/', client=client)
        rows = await source.fetch_rows()
        events = [e async for e in source.events(after=2, cause='education')]
        await source.aclose()
        return rows, events

    rows, events = asyncio.run(scenario())
    assert [r['id'] for r in rows] == [1, 2]
    assert [e['id'] for e in events] == [4, 5]
    assert seen_params == {'after': '2', 'cause': 'education'}


def test_http_source_wraps_transport_errors():
    def handler(request):
        raise httpx.ConnectError('refused')

    async def scenario():
        source = HttpDonationSource('http://testserver', client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        await source.fetch_rows()

    with pytest.raises(FeedError):
        asyncio.run(scenario())


def test_garbled_frame_triggers_resync():
    snapshots = []

    def handler(request):
        if request.url.path.endswith('/stream'):
            return httpx.Response(200, text='id: 2\nevent: donation\ndata: {broken\n\n',
                                  headers={'content-type': 'text/event-stream'})
        snapshots.append(request.url.path)
        return httpx.Response(200, json=[row(1)])

    delays = []

    async def fake_sleep(d):
        delays.append(d)

    async def scenario():
        source = HttpDonationSource('http://testserver', client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        dashboard = DonationDashboard(source, max_retries=2, sleep=fake_sleep)
        try:
            await dashboard.run()
        finally:
            await source.aclose()

    with pytest.raises(FeedError, match='invalid JSON'):
        asyncio.run(scenario())
    assert delays == [0.5, 1.0]
    assert len(snapshots) == 3


def test_other_cause_events_are_not_reported():
    source = FakeSource([[row(1)]], [[row(2, 'healthcare'), row(3)]])
    updates = []
    dashboard = DonationDashboard(source, cause='education', on_update=lambda totals, event: updates.append(event))

    async def scenario():
        dashboard.start()
        await wait_for(lambda: dashboard.totals is not None and dashboard.totals.count == 2)
        await dashboard.stop()

    asyncio.run(scenario())
    assert updates[0] is None and [u['id'] for u in updates[1:]] == [3]
    assert [e['id'] for e in dashboard.recent] == [3, 1]
    assert 2 in dashboard.totals.seen_ids
