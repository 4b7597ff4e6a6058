from __future__ import annotations

import json

from ingest.errors import UnexpectedShapeError


def parse_geojson(data: bytes) -> list[dict]:
    try:
        doc = json.loads(data)
    except json.JSONDecodeError as e:
        raise UnexpectedShapeError(f"invalid JSON: {e}") from e
    if not isinstance(doc, dict) or doc.get("type") != "FeatureCollection":
        raise UnexpectedShapeError("expected a GeoJSON FeatureCollection")
    features = doc.get("features", [])
    if not isinstance(features, list):
        raise UnexpectedShapeError("features is not a list")
    return [f for f in features if isinstance(f, dict)]
