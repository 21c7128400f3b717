from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from pydccio.models.accessory import AccessoryStatus
from pydccio.models.connection import ConnectionRecord, ControllerRole, PowerStatus
from pydccio.models.throttle import ThrottleKey, ThrottlePatch, ThrottleState
from pydccio.state.events import StatusLevel
from pydccio.state.store import MirroredStateStore


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def _record(conn_id: str, **extra: object) -> ConnectionRecord:
    return ConnectionRecord.model_validate({"id": conn_id, "systemType": "xnet-elite", "connected": True, **extra})


def test_replace_connections_is_wholesale() -> None:
    store = MirroredStateStore()
    store.replace_connections([_record("A"), _record("B")])
    store.replace_connections([_record("B")])

    snapshot = store.snapshot()
    assert [record.id for record in snapshot.connections] == ["B"]
    assert snapshot.connection("A") is None


def test_missing_power_status_filled_from_local_cache() -> None:
    store = MirroredStateStore()
    store.replace_connections([_record("A")])
    store.set_power_status("A", PowerStatus.OFF)

    store.replace_connections([_record("A")])

    record = store.connection("A")
    assert record is not None
    assert record.power_status == PowerStatus.OFF


def test_present_power_status_overrides_local_cache() -> None:
    store = MirroredStateStore()
    store.replace_connections([_record("A")])
    store.set_power_status("A", PowerStatus.OFF)

    store.replace_connections([_record("A", powerStatus="ON")])
    store.replace_connections([_record("A")])

    record = store.connection("A")
    assert record is not None
    assert record.power_status == PowerStatus.ON


def test_power_for_unknown_connection_is_cached_for_next_poll() -> None:
    store = MirroredStateStore()

    assert store.set_power_status("late", PowerStatus.ON) is False
    store.replace_connections([_record("late")])

    record = store.connection("late")
    assert record is not None
    assert record.power_status == PowerStatus.ON


def test_focus_resets_throttle_state() -> None:
    store = MirroredStateStore()
    store.focus_throttle(ThrottleKey(3), throttle_id="A:3:false")
    store.patch_throttle(ThrottlePatch(speed=0.7, forward=False, functions={1: True}))

    store.focus_throttle(ThrottleKey(4), throttle_id="A:4:false")

    assert store.throttle == ThrottleState()
    assert store.focus == ThrottleKey(4)
    assert store.throttle_id == "A:4:false"


def test_patch_without_focus_raises() -> None:
    store = MirroredStateStore()
    with pytest.raises(LookupError):
        store.patch_throttle(ThrottlePatch(speed=0.5))


def test_release_clears_focus_and_state() -> None:
    store = MirroredStateStore()
    store.focus_throttle(ThrottleKey(3), throttle_id="A:3:false")
    store.patch_throttle(ThrottlePatch(speed=0.4))
    store.release_throttle()

    snapshot = store.snapshot()
    assert snapshot.focus is None
    assert snapshot.throttle_id is None
    assert snapshot.throttle == ThrottleState()


def test_accessories_first_entry_drives_display() -> None:
    clock = _Clock()
    store = MirroredStateStore(clock=clock)
    store.set_accessories(
        [AccessoryStatus(name="T1", state="thrown"), AccessoryStatus(name="S2", state="red")],
    )

    snapshot = store.snapshot()
    assert snapshot.accessories["T1"].state == "thrown"
    assert snapshot.accessories["S2"].state == "red"
    assert snapshot.accessory_display == AccessoryStatus(name="T1", state="thrown")
    assert snapshot.accessory_status is not None
    assert snapshot.accessory_status.endswith("Accessory T1 set to THROWN")


def test_accessories_without_display_keep_previous_status_line() -> None:
    store = MirroredStateStore()
    store.set_accessories([AccessoryStatus(name="T1", state="closed")])
    line = store.snapshot().accessory_status

    store.set_accessories([AccessoryStatus(name="T9", state="thrown")], display_first=False)

    snapshot = store.snapshot()
    assert snapshot.accessory_status == line
    assert snapshot.accessories["T9"].state == "thrown"


def test_status_message_expires_after_ttl() -> None:
    clock = _Clock()
    store = MirroredStateStore(clock=clock, status_ttl=timedelta(seconds=5))
    store.set_status("Throttle closed", StatusLevel.SUCCESS)

    clock.now += timedelta(seconds=4)
    status = store.snapshot().status
    assert status is not None
    assert status.text == "Throttle closed"

    clock.now += timedelta(seconds=1)
    assert store.snapshot().status is None


def test_snapshot_is_detached_from_store() -> None:
    store = MirroredStateStore()
    store.set_accessories([AccessoryStatus(name="T1", state="closed")])
    snapshot = store.snapshot()

    store.set_accessories([AccessoryStatus(name="T1", state="thrown")])

    assert snapshot.accessories["T1"].state == "closed"


def test_controller_for_role() -> None:
    store = MirroredStateStore()
    store.replace_connections([_record("A", roles=["accessories"]), _record("B", roles=["throttles"])])

    snapshot = store.snapshot()
    throttles = snapshot.controller_for(ControllerRole.THROTTLES)
    assert throttles is not None
    assert throttles.id == "B"
