from __future__ import annotations

import copy
import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Mapping

import numpy as np

from pipefit.standards import GENDERS, SIZES, STANDARDS, NominalSize, ThreadGender, ThreadStandard, lookup

BodyShape = Literal["straight"]
Point3 = tuple[float, float, float]

LENGTH_RANGE_MM = (20.0, 120.0)
TOLERANCE_RANGE_MM = (0.0, 0.4)
RADIAL_SEGMENTS_RANGE = (24, 160)
TURNS_PER_THREAD_RANGE = (3, 10)
MIN_WALL_MM = 1.2
# Material kept between the bore and the thread root of the narrower end.
ROOT_CLEARANCE_MM = 2.4
WALL_MARGIN_MM = 0.6

DEFAULT_STANDARD: ThreadStandard = "BSPP"
DEFAULT_SIZE: NominalSize = "1/2"
DEFAULT_GENDER: ThreadGender = "male"
DEFAULT_LENGTH_MM = 40.0
DEFAULT_WALL_MM = 3.0
DEFAULT_TOLERANCE_MM = 0.15
DEFAULT_RADIAL_SEGMENTS = 64
DEFAULT_TURNS_PER_THREAD = 5

_DEFAULT_PARAMS: dict[str, Any] = {
    "endA": {"standard": "BSPP", "size": "1/2", "gender": "female"},
    "endB": {"standard": "BSPT", "size": "3/4", "gender": "male"},
    "body": {"type": "straight", "length_mm": DEFAULT_LENGTH_MM},
    "wall_thickness_mm": DEFAULT_WALL_MM,
    "tolerance_mm": DEFAULT_TOLERANCE_MM,
    "resolution": {
        "radial_segments": DEFAULT_RADIAL_SEGMENTS,
        "turns_per_thread": DEFAULT_TURNS_PER_THREAD,
    },
}


class InvalidInput(ValueError):
    """Raised when a parameter document cannot be read as a record at all."""


@dataclass(frozen=True)
class EndSpec:
    """One threaded end of the adapter."""

    standard: ThreadStandard = DEFAULT_STANDARD
    size: NominalSize = DEFAULT_SIZE
    gender: ThreadGender = DEFAULT_GENDER

    def to_record(self) -> dict[str, str]:
        return {"standard": self.standard, "size": self.size, "gender": self.gender}


@dataclass(frozen=True)
class BodySpec:
    shape: BodyShape = "straight"
    length_mm: float = DEFAULT_LENGTH_MM


@dataclass(frozen=True)
class AdapterConfig:
    """Canonical adapter parameters, as produced by :func:`sanitize_params`."""

    end_a: EndSpec
    end_b: EndSpec
    body: BodySpec
    wall_thickness_mm: float
    tolerance_mm: float
    radial_segments: int
    turns_per_thread: int

    def to_record(self) -> dict[str, Any]:
        """Return the record layout shared with mesh kernels."""

        return {
            "endA": self.end_a.to_record(),
            "endB": self.end_b.to_record(),
            "body": {"type": self.body.shape, "length_mm": self.body.length_mm},
            "wall_thickness_mm": self.wall_thickness_mm,
            "tolerance_mm": self.tolerance_mm,
            "resolution": {
                "radial_segments": self.radial_segments,
                "turns_per_thread": self.turns_per_thread,
            },
        }


def default_params() -> dict[str, Any]:
    """Return a fresh working record with the starting adapter parameters."""

    return copy.deepcopy(_DEFAULT_PARAMS)


def load_params(path: Path) -> dict[str, Any]:
    """Read a working record from a JSON file."""

    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidInput(f"Unable to read parameters from {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise InvalidInput(f"Parameters in {path} must be a JSON object.")
    return data


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _number(value: object, default: float) -> float:
    """Coerce ``value`` to a float, or ``default`` for NaN and non-numbers.

    Infinities are kept so that clamping sends them to the interval ends.
    """

    if isinstance(value, (bool, np.bool_)):
        return default
    try:
        if isinstance(value, (int, float, np.integer, np.floating)):
            result = float(value)
        elif isinstance(value, str):
            result = float(value.strip())
        else:
            return default
    except OverflowError:
        # Integers beyond float range.
        return math.inf if value > 0 else -math.inf  # type: ignore[operator]
    except ValueError:
        return default
    if math.isnan(result):
        return default
    return result


def _finite(value: float, default: float) -> float:
    return value if math.isfinite(value) else default


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _choice(value: object, allowed: tuple[str, ...], default: str) -> str:
    if isinstance(value, str) and value in allowed:
        return value
    return default


def _section(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def _sanitize_end(raw: Mapping[str, Any]) -> EndSpec:
    return EndSpec(
        standard=_choice(raw.get("standard"), STANDARDS, DEFAULT_STANDARD),  # type: ignore[arg-type]
        size=_choice(raw.get("size"), SIZES, DEFAULT_SIZE),  # type: ignore[arg-type]
        gender=_choice(raw.get("gender"), GENDERS, DEFAULT_GENDER),  # type: ignore[arg-type]
    )


def max_wall_thickness(size_a: str, size_b: str) -> float:
    """Upper wall-thickness bound for an adapter joining two nominal sizes.

    The wall may not eat into the thread root of the narrower end, so the
    bound follows the smaller major diameter. Raises ``UnknownSize`` for
    sizes outside the table.
    """

    min_major = min(lookup(size_a).major_diameter_mm, lookup(size_b).major_diameter_mm)
    max_minor = min_major - ROOT_CLEARANCE_MM
    return max(MIN_WALL_MM, max_minor / 2.0 - WALL_MARGIN_MM)


def sanitize_params(raw: Mapping[str, Any] | AdapterConfig | None) -> AdapterConfig:
    """Correct a working record into a canonical :class:`AdapterConfig`.

    Never raises: unknown categories fall back to defaults, non-numeric values
    take the field default, and numbers are clamped to their ranges. The input
    is only read, never modified.
    """

    if isinstance(raw, AdapterConfig):
        record: Mapping[str, Any] = raw.to_record()
    elif isinstance(raw, Mapping):
        record = raw
    else:
        record = {}

    end_a = _sanitize_end(_section(record, "endA"))
    end_b = _sanitize_end(_section(record, "endB"))

    body_raw = _section(record, "body")
    length = _clamp(
        _finite(_number(body_raw.get("length_mm"), DEFAULT_LENGTH_MM), DEFAULT_LENGTH_MM), *LENGTH_RANGE_MM
    )
    body = BodySpec(shape="straight", length_mm=length)

    tolerance = _clamp(_number(record.get("tolerance_mm"), DEFAULT_TOLERANCE_MM), *TOLERANCE_RANGE_MM)

    resolution = _section(record, "resolution")
    radial_segments = _round_half_up(
        _clamp(_number(resolution.get("radial_segments"), DEFAULT_RADIAL_SEGMENTS), *RADIAL_SEGMENTS_RANGE)
    )
    turns_per_thread = _round_half_up(
        _clamp(_number(resolution.get("turns_per_thread"), DEFAULT_TURNS_PER_THREAD), *TURNS_PER_THREAD_RANGE)
    )

    # Must follow the end corrections above: the bound depends on the final sizes.
    max_wall = max_wall_thickness(end_a.size, end_b.size)
    wall = _clamp(_number(record.get("wall_thickness_mm"), DEFAULT_WALL_MM), MIN_WALL_MM, max_wall)

    return AdapterConfig(
        end_a=end_a,
        end_b=end_b,
        body=body,
        wall_thickness_mm=wall,
        tolerance_mm=tolerance,
        radial_segments=radial_segments,
        turns_per_thread=turns_per_thread,
    )


def end_markers(config: AdapterConfig) -> tuple[Point3, Point3]:
    """Positions of the end A and end B reference markers on the body axis."""

    half = config.body.length_mm / 2.0
    return (0.0, 0.0, -half), (0.0, 0.0, half)
