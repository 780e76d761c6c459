"""
Haptic waveform patterns and the named pattern catalog.

A pattern is an ordered list of (duration_ms, amplitude) steps, stored as two
equal-length tuples so it can be handed to a vibration primitive unchanged.
The catalog is a plain immutable value: build it once with
`PatternCatalog.standard()` and pass it to whoever needs it.
"""

from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

NO_REPEAT = -1
MAX_AMPLITUDE = 255

_STEPS = TypeAdapter(list[tuple[int, int]])


class WaveformPattern(BaseModel):
    """Validated actuation pattern. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    timings: tuple[int, ...] = Field(min_length=1, description="Step durations in milliseconds")
    amplitudes: tuple[int, ...] = Field(min_length=1, description="Step intensities, 0-255")
    repeat_from: int = Field(
        default=NO_REPEAT, ge=NO_REPEAT, description="Index to restart from, or -1 for no repeat"
    )

    @model_validator(mode="after")
    def validate_steps(self) -> "WaveformPattern":
        if len(self.timings) != len(self.amplitudes):
            raise ValueError(
                f"Timings ({len(self.timings)}) and amplitudes ({len(self.amplitudes)}) "
                "must have the same length"
            )
        if any(duration < 0 for duration in self.timings):
            raise ValueError("All step durations must be non-negative")
        if any(not 0 <= amplitude <= MAX_AMPLITUDE for amplitude in self.amplitudes):
            raise ValueError(f"All amplitude values must be between 0 and {MAX_AMPLITUDE}")
        if self.repeat_from >= len(self.timings):
            raise ValueError(
                f"repeat_from {self.repeat_from} is out of bounds for {len(self.timings)} steps"
            )
        return self

    @property
    def steps(self) -> tuple[tuple[int, int], ...]:
        return tuple(zip(self.timings, self.amplitudes, strict=True))

    @property
    def repeats(self) -> bool:
        return self.repeat_from != NO_REPEAT

    @property
    def max_amplitude(self) -> int:
        return max(self.amplitudes)

    @property
    def single_duration_ms(self) -> int:
        """Duration of one pass through the steps."""
        return sum(self.timings)

    @property
    def session_duration_ms(self) -> int:
        """
        How long the actuator is expected to stay busy with this pattern.

        A positive repeat index counts as that many passes; no repeat (or a
        repeat from index 0) is a single pass.
        """
        copies = self.repeat_from if self.repeat_from > 0 else 1
        return self.single_duration_ms * copies


def new_pattern(pairs: Iterable[tuple[int, int]], repeat_from: int = NO_REPEAT) -> WaveformPattern:
    """Build a pattern from (duration_ms, amplitude) pairs.

    Raises:
        ValidationError: if a step is not a (duration, amplitude) pair, any
            amplitude is outside 0-255, any duration is negative, the list is
            empty or `repeat_from` is out of bounds.
    """
    steps = _STEPS.validate_python(list(pairs))
    return WaveformPattern(
        timings=tuple(duration for duration, _ in steps),
        amplitudes=tuple(amplitude for _, amplitude in steps),
        repeat_from=repeat_from,
    )


class CatalogEntry(NamedTuple):
    name: str
    display_label: str
    pattern: WaveformPattern


STANDARD_PATTERNS: tuple[CatalogEntry, ...] = (
    CatalogEntry("SHORT", "Short Tap", new_pattern([(50, 200), (50, 0)])),
    CatalogEntry("LONG", "Long Vibration", new_pattern([(200, 255), (100, 0)])),
    CatalogEntry("PULSE", "Pulse", new_pattern([(50, 255), (50, 0), (50, 255), (50, 0)])),
    CatalogEntry(
        "DOUBLE_TAP", "Double Tap", new_pattern([(50, 200), (100, 0), (50, 200), (100, 0)])
    ),
    CatalogEntry(
        "WAVE",
        "Wave",
        WaveformPattern(
            timings=(50, 50, 50, 50, 50, 100, 350, 25, 25, 25, 25, 200),
            amplitudes=(33, 51, 75, 113, 170, 255, 0, 38, 62, 100, 160, 255),
        ),
    ),
    CatalogEntry(
        "EMERGENCY",
        "Emergency",
        WaveformPattern(
            timings=(50, 50, 100, 50, 50), amplitudes=(64, 128, 255, 128, 64), repeat_from=1
        ),
    ),
)

DEFAULT_PATTERN_NAME = "SHORT"


class PatternCatalog:
    """
    Read-only mapping from pattern name to waveform.

    Lookup is total: an unknown, empty or missing name resolves to the
    default entry instead of failing.
    """

    def __init__(
        self, entries: Iterable[CatalogEntry], default_name: str = DEFAULT_PATTERN_NAME
    ) -> None:
        ordered = tuple(entries)
        by_name = {entry.name: entry for entry in ordered}
        if len(by_name) != len(ordered):
            raise ValueError("Pattern names in a catalog must be unique")
        if default_name not in by_name:
            raise ValueError(f"Default pattern {default_name!r} is not in the catalog")

        self._entries = ordered
        self._by_name = MappingProxyType(by_name)
        self._default = by_name[default_name]

    @classmethod
    def standard(cls) -> "PatternCatalog":
        """The fixed set of patterns shipped with the application."""
        return cls(STANDARD_PATTERNS)

    @property
    def default_entry(self) -> CatalogEntry:
        return self._default

    def entry(self, name: str | None) -> CatalogEntry:
        if not name:
            return self._default
        return self._by_name.get(name, self._default)

    def lookup(self, name: str | None) -> WaveformPattern:
        return self.entry(name).pattern

    def entries(self) -> tuple[CatalogEntry, ...]:
        return self._entries

    def listing(self) -> list[tuple[str, str]]:
        """(name, display_label) pairs in catalog order, for configuration screens."""
        return [(entry.name, entry.display_label) for entry in self._entries]

    def names(self) -> list[str]:
        return [entry.name for entry in self._entries]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
