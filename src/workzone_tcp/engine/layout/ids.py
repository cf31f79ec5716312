"""Identifier helpers for layout devices."""
from __future__ import annotations

import time
from typing import Iterable, Optional, Set

from sqids import Sqids

DEVICE_ID_PREFIX = "dev_"

_SQIDS = Sqids(min_length=6)


class DeviceIdFactory:
    """Issue ``dev_<sqid>`` identifiers that are unique within one layout.

    Ids encode the creation epoch (ms) and a running sequence. Identifiers
    already present in a layout can be reserved so that edits never collide
    with machine-issued ids.
    """

    def __init__(self, epoch_ms: Optional[int] = None, reserved: Iterable[str] = ()) -> None:
        self._epoch_ms = int(epoch_ms) if epoch_ms is not None else time.time_ns() // 1_000_000
        self._seq = 0
        self._issued: Set[str] = set(reserved)

    def reserve(self, ids: Iterable[str]) -> None:
        self._issued.update(ids)

    def __call__(self) -> str:
        while True:
            self._seq += 1
            token = f"{DEVICE_ID_PREFIX}{_SQIDS.encode([self._epoch_ms, self._seq])}"
            if token not in self._issued:
                self._issued.add(token)
                return token


def decode_device_id(device_id: str) -> Optional[tuple]:
    """Return ``(epoch_ms, seq)`` for machine-issued ids, None otherwise."""
    if not device_id.startswith(DEVICE_ID_PREFIX):
        return None
    values = _SQIDS.decode(device_id[len(DEVICE_ID_PREFIX):])
    if len(values) != 2:
        return None
    return tuple(values)
