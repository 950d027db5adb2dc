"""Projection horizon — inclusive calendar-year range."""

from __future__ import annotations

from typing import NamedTuple

from engine.currency import to_int
from engine.errors import ConfigurationError, ValidationError


class Horizon(NamedTuple):
    start_year: int
    end_year: int

    @classmethod
    def of(cls, start_year: int, end_year: int) -> "Horizon":
        try:
            start = to_int(start_year, "horizon.start_year")
            end = to_int(end_year, "horizon.end_year")
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc
        if start > end:
            raise ConfigurationError(
                f"Horizon start {start} is after end {end}")
        return cls(start, end)

    @property
    def years(self) -> range:
        return range(self.start_year, self.end_year + 1)

    @property
    def n_years(self) -> int:
        return self.end_year - self.start_year + 1

    def contains(self, year: int) -> bool:
        return self.start_year <= year <= self.end_year

    def year_index(self, year: int) -> int:
        """0-based position of year in the horizon."""
        if not self.contains(year):
            raise KeyError(year)
        return year - self.start_year


def is_boundary(year: int, base_year: int, frequency: int) -> bool:
    """True when year is a re-application year for a cadence."""
    return year > base_year and (year - base_year) % frequency == 0


def steps_elapsed(year: int, base_year: int, frequency: int) -> int:
    """Number of completed cadence steps from base_year to year (>= 0)."""
    if year <= base_year:
        return 0
    return (year - base_year) // frequency
