"""
The static body table and helpers for turning plain rows into descriptors.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from pydantic import ValidationError

from .body import BodyDescriptor
from .errors import ConfigError


def titius_bode_distance(index: int) -> float:
    """Theoretical mean distance in AU for orbital index n: 0.4 + 0.3 * 2^n."""
    return 0.4 + 0.3 * 2.0 ** index


# Mercury's index stands in for the n -> -inf limit of the law.
SOLAR_SYSTEM: List[Dict[str, Any]] = [
    {"name": "Mercury", "index": -10, "aAU": 0.387, "e": 0.2056, "color": "#A9A9A9", "size": 4.0},
    {"name": "Venus", "index": -2, "aAU": 0.723, "e": 0.0068, "color": "#E6D3A3", "size": 5.0},
    {"name": "Earth", "index": -1, "aAU": 1.000, "e": 0.0167, "color": "#1E90FF", "size": 5.0},
    {"name": "Mars", "index": 0, "aAU": 1.524, "e": 0.0934, "color": "#CD5C5C", "size": 4.5},
    {"name": "Ceres", "index": 1, "aAU": 2.770, "e": 0.0758, "color": "#8B8B83", "size": 3.0},
    {"name": "Jupiter", "index": 2, "aAU": 5.203, "e": 0.0489, "color": "#E59866", "size": 9.0},
    {"name": "Saturn", "index": 3, "aAU": 9.580, "e": 0.0565, "color": "#F4D03F", "size": 8.0},
    {"name": "Uranus", "index": 4, "aAU": 19.19, "e": 0.0457, "color": "#AFDBF5", "size": 7.0},
    {"name": "Neptune", "index": 5, "aAU": 30.07, "e": 0.0113, "color": "#4169E1", "size": 7.0},
    {"name": "Pluto", "index": 6, "aAU": 39.48, "e": 0.2488, "color": "#C2B280", "size": 2.5},
]


def descriptor_from_row(row: Mapping[str, Any]) -> BodyDescriptor:
    """
    Build a descriptor from a catalog row. ``theoreticalAU`` may be given
    explicitly; otherwise it follows from the orbital index.
    """
    try:
        index = row["index"]
        theoretical = row.get("theoreticalAU")
        if theoretical is None:
            theoretical = titius_bode_distance(index)
        return BodyDescriptor(
            name=row["name"],
            theoretical_distance=theoretical,
            actual_distance=row["aAU"],
            eccentricity=row.get("e", 0.0),
            orbital_index=index,
            color=row.get("color", "#999999"),
            size=row.get("size", 3.0),
        )
    except KeyError as exc:
        raise ConfigError(f"body row is missing {exc.args[0]!r}: {dict(row)}") from exc
    except (TypeError, ValueError, ValidationError) as exc:
        raise ConfigError(f"invalid body row {row.get('name', '?')!r}: {exc}") from exc


def load_bodies(rows: Iterable[Mapping[str, Any]] = SOLAR_SYSTEM) -> List[BodyDescriptor]:
    descriptors: List[BodyDescriptor] = []
    seen = set()
    for row in rows:
        descriptor = descriptor_from_row(row)
        if descriptor.name in seen:
            raise ConfigError(f"duplicate body name {descriptor.name!r}")
        seen.add(descriptor.name)
        descriptors.append(descriptor)
    if not descriptors:
        raise ConfigError("body table is empty")
    return descriptors

