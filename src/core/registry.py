"""Tracked-app registry (core domain)."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping

from core.models import ChangeRecord

DEFAULT_TRACKED_APPS: Mapping[int, str] = MappingProxyType(
    {
        387990: "Scrap Mechanic",
        588870: "Scrap Mechanic Mod Tool",
    }
)


class TrackedAppRegistry:
    """Read-only mapping of tracked app ids to display names."""

    def __init__(self, apps: Mapping[int, str]) -> None:
        self._apps = MappingProxyType({int(app_id): name for app_id, name in apps.items()})

    def __contains__(self, app_id: object) -> bool:
        return app_id in self._apps

    def __iter__(self) -> Iterator[int]:
        return iter(self._apps)

    def __len__(self) -> int:
        return len(self._apps)

    def name_for(self, app_id: int) -> str:
        """Return the display name, falling back to the raw id."""

        return self._apps.get(app_id, str(app_id))

    def filter(self, records: Iterable[ChangeRecord]) -> List[ChangeRecord]:
        """Keep only tracked records, preserving their order."""

        return [record for record in records if record.app_id in self._apps]
