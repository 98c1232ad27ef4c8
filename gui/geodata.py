"""Country and land outlines for the globe, decoded from world-atlas TopoJSON.

The file is downloaded once and kept under the cache directory; later runs
read the local copy. Decoding follows the TopoJSON layout: quantized,
delta-encoded arcs shared between geometries, with negative arc indices
meaning "walk this arc backwards"."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import requests

from globe.common import BoundaryGeometry

LOGGER = logging.getLogger(__name__)

WORLD_ATLAS_URL = "https://cdn.jsdelivr.net/npm/world-atlas@2/countries-110m.json"
WORLD_ATLAS_FILE = "countries-110m.json"

Arc = np.ndarray  # (N, 2) lon, lat


def default_cache_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "data"


def load_boundaries(cache_dir: Path | None = None, *, url: str = WORLD_ATLAS_URL) -> BoundaryGeometry:
    """Read (downloading first if needed) and decode the boundary TopoJSON.

    Any failure is logged and yields empty geometry, so the globe still
    renders without outlines.
    """
    path = _ensure_resource(cache_dir or default_cache_dir(), WORLD_ATLAS_FILE, url)
    if path is None:
        LOGGER.warning("Boundary data unavailable; drawing the globe without outlines")
        return BoundaryGeometry.empty()
    try:
        topology = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        LOGGER.exception("Failed to parse %s: %s", path, exc)
        _discard(path)
        return BoundaryGeometry.empty()
    try:
        return decode_topology(topology)
    except (AttributeError, KeyError, TypeError, ValueError, IndexError) as exc:
        LOGGER.warning("Malformed topology in %s: %s", path.name, exc)
        _discard(path)
        return BoundaryGeometry.empty()


def decode_topology(
    topology: Mapping[str, Any],
    *,
    regions_key: str = "countries",
    land_key: str = "land",
) -> BoundaryGeometry:
    if topology.get("type") != "Topology":
        raise ValueError(f"Expected a Topology, got {topology.get('type')!r}")
    arcs = decode_arcs(topology.get("arcs") or [], topology.get("transform"))
    objects = topology.get("objects") or {}

    regions: List[np.ndarray] = []
    borders: List[np.ndarray] = []
    coastlines: List[np.ndarray] = []

    countries = objects.get(regions_key)
    if countries is not None:
        for geometry in _geometries(countries):
            regions.extend(geometry_rings(geometry, arcs))
        borders = mesh_interior(countries, arcs)
    else:
        LOGGER.warning("Topology has no %r object", regions_key)

    land = objects.get(land_key)
    if land is not None:
        for geometry in _geometries(land):
            coastlines.extend(geometry_rings(geometry, arcs))
    else:
        LOGGER.warning("Topology has no %r object", land_key)

    LOGGER.debug(
        "Decoded %d arcs into %d rings, %d borders, %d coastlines",
        len(arcs),
        len(regions),
        len(borders),
        len(coastlines),
    )
    return BoundaryGeometry(regions=tuple(regions), borders=tuple(borders), coastlines=tuple(coastlines))


def decode_arcs(raw_arcs: Sequence[Sequence[Sequence[float]]], transform: Optional[Mapping[str, Any]]) -> List[Arc]:
    """Absolute lon/lat arrays; quantized arcs are delta-decoded and rescaled."""
    decoded: List[Arc] = []
    if transform:
        sx, sy = (float(v) for v in transform["scale"])
        tx, ty = (float(v) for v in transform["translate"])
    for raw in raw_arcs:
        points = np.asarray([pt[:2] for pt in raw], dtype=np.float64).reshape(-1, 2)
        if transform and len(points):
            points = np.cumsum(points, axis=0)
            points[:, 0] = points[:, 0] * sx + tx
            points[:, 1] = points[:, 1] * sy + ty
        decoded.append(points)
    return decoded


def stitch_ring(indices: Iterable[int], arcs: Sequence[Arc]) -> np.ndarray:
    """Join arcs end to end; the shared endpoint between two arcs appears once."""
    pieces: List[np.ndarray] = []
    for index in indices:
        arc = arcs[~index][::-1] if index < 0 else arcs[index]
        if pieces and len(arc):
            arc = arc[1:]
        pieces.append(arc)
    if not pieces:
        return np.zeros((0, 2), dtype=np.float64)
    return np.concatenate(pieces, axis=0)


def geometry_rings(geometry: Mapping[str, Any], arcs: Sequence[Arc]) -> List[np.ndarray]:
    gtype = geometry.get("type")
    refs = geometry.get("arcs") or []
    if gtype == "Polygon":
        polygons = [refs]
    elif gtype == "MultiPolygon":
        polygons = refs
    elif gtype == "GeometryCollection":
        rings: List[np.ndarray] = []
        for child in geometry.get("geometries") or []:
            rings.extend(geometry_rings(child, arcs))
        return rings
    else:
        return []
    rings = []
    for polygon in polygons:
        for ring in polygon:
            points = stitch_ring(ring, arcs)
            if len(points) >= 3:
                rings.append(points)
    return rings


def mesh_interior(collection: Mapping[str, Any], arcs: Sequence[Arc]) -> List[np.ndarray]:
    """Arcs shared by two different geometries, i.e. borders between neighbours."""
    owners: Dict[int, set[int]] = {}
    for owner, geometry in enumerate(_geometries(collection)):
        for index in _arc_refs(geometry):
            owners.setdefault(index if index >= 0 else ~index, set()).add(owner)
    return [arcs[i] for i in sorted(owners) if len(owners[i]) > 1 and len(arcs[i]) >= 2]


def _geometries(obj: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    if obj.get("type") == "GeometryCollection":
        return list(obj.get("geometries") or [])
    return [obj]


def _arc_refs(geometry: Mapping[str, Any]) -> Iterable[int]:
    gtype = geometry.get("type")
    refs = geometry.get("arcs") or []
    if gtype == "Polygon":
        for ring in refs:
            yield from ring
    elif gtype == "MultiPolygon":
        for polygon in refs:
            for ring in polygon:
                yield from ring
    elif gtype == "LineString":
        yield from refs
    elif gtype == "MultiLineString":
        for line in refs:
            yield from line


def _ensure_resource(cache_dir: Path, name: str, url: str) -> Path | None:
    target = Path(cache_dir) / name
    if target.exists():
        return target
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Cannot create cache directory %s: %s", target.parent, exc)
        return None
    try:
        response = requests.get(url, timeout=30)
        response.raise_for_status()
    except requests.RequestException as exc:
        LOGGER.warning("Failed to download %s: %s", name, exc)
        return None
    partial = target.with_name(name + ".part")
    try:
        partial.write_bytes(response.content)
        partial.replace(target)
    except OSError as exc:
        LOGGER.warning("Could not cache %s at %s: %s", name, target, exc)
        _discard(partial)
        return None
    LOGGER.info("Downloaded %s to %s", name, target)
    return target


def _discard(path: Path) -> None:
    """Drop a bad cache file so the next run downloads it again."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("Could not remove %s: %s", path, exc)

