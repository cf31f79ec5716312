from __future__ import annotations

from workzone_tcp.engine.layout.ids import DEVICE_ID_PREFIX, DeviceIdFactory, decode_device_id


def test_factory_issues_unique_prefixed_ids() -> None:
    factory = DeviceIdFactory(epoch_ms=1_700_000_000_000)

    ids = [factory() for _ in range(50)]

    assert len(set(ids)) == 50
    assert all(i.startswith(DEVICE_ID_PREFIX) for i in ids)


def test_reserved_ids_are_skipped() -> None:
    probe = DeviceIdFactory(epoch_ms=42)
    taken = probe()

    factory = DeviceIdFactory(epoch_ms=42, reserved=[taken])

    assert factory() != taken


def test_reserve_after_construction() -> None:
    first = DeviceIdFactory(epoch_ms=7)()
    factory = DeviceIdFactory(epoch_ms=7)
    factory.reserve([first])

    assert factory() != first


def test_decode_round_trip_and_foreign_ids() -> None:
    factory = DeviceIdFactory(epoch_ms=1234)
    factory()
    second = factory()

    assert decode_device_id(second) == (1234, 2)
    assert decode_device_id("user-sign-1") is None
