"""Reference locations used to seed empty metadata tables."""

from __future__ import annotations

import math
import re

from .models import Location, LocationClass

# Provincial capitals of Indonesia.
DEFAULT_CITIES: tuple[tuple[str, float, float], ...] = (
    ("Banda Aceh", 5.5483, 95.3238),
    ("Medan", 3.5952, 98.6722),
    ("Palembang", -2.9761, 104.7754),
    ("Padang", -0.9471, 100.4172),
    ("Bengkulu", -3.8004, 102.2655),
    ("Pekanbaru", 0.5071, 101.4478),
    ("Tanjung Pinang", 0.9186, 104.4586),
    ("Jambi", -1.6101, 103.6131),
    ("Bandar Lampung", -5.4292, 105.2619),
    ("Pangkal Pinang", -2.1316, 106.1169),
    ("Pontianak", -0.0263, 109.3425),
    ("Samarinda", -0.5022, 117.1536),
    ("Banjarbaru", -3.4543, 114.8405),
    ("Palangkaraya", -2.2089, 113.9213),
    ("Tanjung Selor", 2.8362, 117.3625),
    ("Serang", -6.1204, 106.1503),
    ("Jakarta", -6.2088, 106.8456),
    ("Bandung", -6.9175, 107.6191),
    ("Semarang", -6.9667, 110.4167),
    ("Yogyakarta", -7.7956, 110.3695),
    ("Surabaya", -7.2575, 112.7521),
    ("Denpasar", -8.6705, 115.2126),
    ("Kupang", -10.1718, 123.6075),
    ("Mataram", -8.5833, 116.1167),
    ("Gorontalo", 0.5435, 123.0585),
    ("Mamuju", -2.6739, 118.8896),
    ("Palu", -0.8999, 119.8707),
    ("Manado", 1.4748, 124.8421),
    ("Kendari", -3.9450, 122.5986),
    ("Makassar", -5.1477, 119.4327),
    ("Sofifi", 0.7436, 127.5664),
    ("Ambon", -3.6954, 128.1814),
    ("Manokwari", -0.8618, 134.0640),
    ("Jayapura", -2.5920, 140.6692),
)

DEFAULT_PORTS: tuple[tuple[str, float, float], ...] = (
    ("Pelabuhan Sabang", 5.8933, 95.3214),
    ("Pelabuhan Belawan", 3.7833, 98.6833),
    ("Pelabuhan Dumai", 1.6667, 101.45),
    ("Pelabuhan Teluk Bayur", -0.9833, 100.3667),
    ("Pelabuhan Panjang", -5.45, 105.3167),
    ("Pelabuhan Tanjung Priok", -6.1, 106.8833),
    ("Pelabuhan Tanjung Perak", -7.2167, 112.7333),
    ("Pelabuhan Benoa", -8.75, 115.2167),
    ("Pelabuhan Pontianak", -0.0333, 109.3167),
    ("Pelabuhan Banjarmasin", -3.3167, 114.5833),
    ("Pelabuhan Balikpapan", -1.2667, 116.8333),
    ("Pelabuhan Samarinda", -0.5, 117.15),
    ("Pelabuhan Tarakan", 3.3, 117.6333),
    ("Pelabuhan Pantoloan", -0.7, 119.85),
    ("Pelabuhan Makassar", -5.1167, 119.4),
    ("Pelabuhan Kendari", -3.9833, 122.5833),
    ("Pelabuhan Bitung", 1.45, 125.1833),
    ("Pelabuhan Ternate", 0.7833, 127.3667),
    ("Pelabuhan Ambon", -3.6833, 128.1833),
    ("Pelabuhan Sorong", -0.8667, 131.25),
    ("Pelabuhan Jayapura", -2.5333, 140.7167),
)

_NON_SLUG_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def create_slug(text: str) -> str:
    """Lower-case, strip punctuation and join words with hyphens."""
    cleaned = _NON_SLUG_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub("-", cleaned.strip())


def default_cities() -> list[Location]:
    return [
        Location(location_class=LocationClass.CITY, name=name, latitude=lat, longitude=lon)
        for name, lat, lon in DEFAULT_CITIES
    ]


def default_ports() -> list[Location]:
    return [
        Location(
            location_class=LocationClass.PORT,
            name=name,
            latitude=lat,
            longitude=lon,
            slug=create_slug(name),
        )
        for name, lat, lon in DEFAULT_PORTS
    ]


def _axis(start: float, stop: float, step: float) -> list[float]:
    # Index-based stepping; repeated float addition drifts off the lattice.
    count = math.floor((stop - start) / step + 1e-9) + 1
    return [round(start + index * step, 4) for index in range(count)]


def generate_grid(
    lat_min: float,
    lat_max: float,
    lon_min: float,
    lon_max: float,
    step: float,
) -> list[Location]:
    """Regular lattice over a bounding box, both bounds inclusive."""
    if step <= 0:
        raise ValueError("Grid step must be > 0.")
    return [
        Location(
            location_class=LocationClass.GRID,
            name=f"{lat:.1f}, {lon:.1f}",
            latitude=lat,
            longitude=lon,
        )
        for lat in _axis(lat_min, lat_max, step)
        for lon in _axis(lon_min, lon_max, step)
    ]
