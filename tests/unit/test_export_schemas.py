"""Tests for the schema export script."""

import json
from pathlib import Path

from scripts.export_schemas import main


def test_exports_itinerary_schema_with_wire_names(tmp_path: Path) -> None:
    written = main(tmp_path / "schemas")

    assert {p.name for p in written} == {
        "Itinerary.schema.json",
        "WaypointAdjustment.schema.json",
        "GeocodeCacheEntry.schema.json",
    }
    schema = json.loads((tmp_path / "schemas" / "Itinerary.schema.json").read_text(encoding="utf-8"))
    activity = schema["$defs"]["Activity"]["properties"]
    assert "poiName" in activity
    assert "stayDurationMinutes" in activity
