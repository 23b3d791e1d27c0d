import asyncio

from safedrop.deps import http_error
from safedrop.exceptions import (
    ClaimInProgress, FunctionCallError, OrderUnavailable, SubscriptionRequired, UnknownUserType,
)
from safedrop.realtime import _Hub


def test_service_errors_map_to_status_codes():
    assert http_error(PermissionError("no")).status_code == 403
    assert http_error(LookupError("Order not found")).detail == "Order not found"
    assert http_error(ValueError("bad")).status_code == 400
    assert http_error(OrderUnavailable()).status_code == 409
    assert http_error(ClaimInProgress()).status_code == 409
    assert http_error(UnknownUserType()).status_code == 403
    assert http_error(FunctionCallError()).status_code == 502

    paywall = http_error(SubscriptionRequired())
    assert paywall.status_code == 402
    assert paywall.detail["paywall"] is True


def test_hub_fans_out_sse_frames():
    hub = _Hub()

    async def scenario():
        stream = hub.subscribe()
        first = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        assert hub.subscriber_count == 1
        await hub.publish("order_claimed", {"order_id": 7})
        frame = await asyncio.wait_for(first, timeout=1)
        await stream.aclose()
        return frame

    frame = asyncio.run(scenario())
    assert frame == 'event: order_claimed\ndata: {"order_id": 7}\n\n'
    assert hub.subscriber_count == 0


def test_hub_delivers_addressed_events_to_owner_and_admins():
    hub = _Hub()

    async def scenario():
        owner, stranger, admin = hub.subscribe(1), hub.subscribe(2), hub.subscribe(3, is_admin=True)
        pending = [asyncio.ensure_future(s.__anext__()) for s in (owner, stranger, admin)]
        await asyncio.sleep(0)
        await hub.publish("driver_location", {"lat": 24.7, "lng": 46.6}, to=[1])
        await hub.publish("complaint_created", {"complaint_id": 5}, to=())
        await asyncio.sleep(0.01)
        got = [p.result() if p.done() else None for p in pending]
        admin_second = await asyncio.wait_for(admin.__anext__(), timeout=1)
        for p in pending:
            p.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for s in (owner, stranger, admin):
            await s.aclose()
        return got, admin_second

    (owner_frame, stranger_frame, admin_frame), admin_second = asyncio.run(scenario())
    assert owner_frame.startswith("event: driver_location")
    assert stranger_frame is None
    assert admin_frame.startswith("event: driver_location")
    assert admin_second.startswith("event: complaint_created")
