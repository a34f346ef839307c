from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping

ThreadStandard = Literal["BSPP", "BSPT"]
ThreadGender = Literal["male", "female"]
NominalSize = Literal["1/4", "3/8", "1/2", "3/4", "1"]


class UnknownSize(KeyError):
    """Raised when a nominal pipe size is not in the thread table."""


@dataclass(frozen=True)
class ThreadEntry:
    """Physical thread dimensions for one nominal pipe size."""

    major_diameter_mm: float
    pitch_mm: float
    threads_per_inch: int

    def __post_init__(self) -> None:
        if self.major_diameter_mm <= 0 or self.pitch_mm <= 0 or self.threads_per_inch <= 0:
            raise ValueError("Thread dimensions must be positive.")


# Major diameter and pitch per ISO 228 / ISO 7 (BSP). Parallel and tapered
# threads share the same nominal dimensions; only the generated geometry differs.
BSP_TABLE: Mapping[str, ThreadEntry] = MappingProxyType(
    {
        "1/4": ThreadEntry(major_diameter_mm=13.157, pitch_mm=1.337, threads_per_inch=19),
        "3/8": ThreadEntry(major_diameter_mm=16.662, pitch_mm=1.337, threads_per_inch=19),
        "1/2": ThreadEntry(major_diameter_mm=20.955, pitch_mm=1.814, threads_per_inch=14),
        "3/4": ThreadEntry(major_diameter_mm=26.441, pitch_mm=1.814, threads_per_inch=14),
        "1": ThreadEntry(major_diameter_mm=33.249, pitch_mm=2.309, threads_per_inch=11),
    }
)

STANDARDS: tuple[ThreadStandard, ...] = ("BSPP", "BSPT")
GENDERS: tuple[ThreadGender, ...] = ("male", "female")
SIZES: tuple[str, ...] = tuple(BSP_TABLE)


def lookup(size: str) -> ThreadEntry:
    """Return the thread dimensions for a nominal size such as ``"1/2"``."""

    try:
        return BSP_TABLE[size]
    except (KeyError, TypeError):
        raise UnknownSize(f"Unsupported nominal size {size!r}; expected one of {', '.join(SIZES)}.") from None
