from __future__ import annotations

from dataclasses import dataclass, field

from quoteflow.settings import DEFAULT_MAX_DEVICES


@dataclass
class InMemoryLocalMemory:
    """Process-wide stand-in for browser storage, partitioned by device id.

    Holds at most ``max_devices`` partitions; writing for a new device beyond
    that drops the partition written least recently.
    """

    max_devices: int = DEFAULT_MAX_DEVICES
    devices: dict[str, dict[str, str]] = field(default_factory=dict)

    def for_device(self, device_id: str) -> DeviceScopedMemory:
        return DeviceScopedMemory(store=self, device_id=device_id)

    def read(self, *, device_id: str, key: str) -> str | None:
        return self.devices.get(device_id, {}).get(key)

    def write(self, *, device_id: str, key: str, value: str) -> None:
        entries = self.devices.pop(device_id, None)
        if entries is None:
            entries = {}
            while self.devices and len(self.devices) >= self.max_devices:
                del self.devices[next(iter(self.devices))]
        entries[key] = value
        self.devices[device_id] = entries


@dataclass
class DeviceScopedMemory:
    store: InMemoryLocalMemory
    device_id: str

    def get(self, key: str) -> str | None:
        return self.store.read(device_id=self.device_id, key=key)

    def set(self, key: str, value: str) -> None:
        self.store.write(device_id=self.device_id, key=key, value=value)
