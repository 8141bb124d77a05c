"""Per-field priority merge of partial provider observations."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from weather.models import OBSERVATION_FIELDS, OPEN_METEO, OPENWEATHERMAP, WUNDERGROUND, RawObservation

PROVIDER_PRIORITY: tuple[str, ...] = (WUNDERGROUND, OPENWEATHERMAP, OPEN_METEO)

# field → providers in the order they are consulted
MERGE_TABLE: dict[str, tuple[str, ...]] = {name: PROVIDER_PRIORITY for name in OBSERVATION_FIELDS}
# a PWS reports instantaneous readings only, never the day's range
MERGE_TABLE["temp_high"] = (OPENWEATHERMAP, OPEN_METEO)
MERGE_TABLE["temp_low"] = (OPENWEATHERMAP, OPEN_METEO)


@dataclass(frozen=True)
class MergedFields:
    values: dict[str, float | None]
    sources: dict[str, str] = field(default_factory=dict)

    @property
    def has_data(self) -> bool:
        return any(v is not None for v in self.values.values())


def merge_observations(
    observations: Iterable[RawObservation],
    table: Mapping[str, tuple[str, ...]] = MERGE_TABLE,
) -> MergedFields:
    """Choose, independently for every field, the highest-priority non-null value.

    Input order is irrelevant: priority lives in `table`. Observations from
    providers absent from a field's priority list never supply that field.
    """
    by_provider = {obs.provider: obs for obs in observations}

    values: dict[str, float | None] = {}
    sources: dict[str, str] = {}
    for name, priority in table.items():
        values[name] = None
        for provider in priority:
            obs = by_provider.get(provider)
            if obs is None:
                continue
            value = getattr(obs, name)
            if value is not None:
                values[name] = value
                sources[name] = provider
                break

    return MergedFields(values=values, sources=sources)
