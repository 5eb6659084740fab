"""Export JSON schemas for the itinerary input and persisted adjustment formats."""

import json
from pathlib import Path

from routeplan.models import GeocodeCacheEntry, Itinerary, WaypointAdjustment

SCHEMAS = {
    "Itinerary": Itinerary,
    "WaypointAdjustment": WaypointAdjustment,
    "GeocodeCacheEntry": GeocodeCacheEntry,
}


def main(schemas_dir: Path = Path("docs/schemas")) -> list[Path]:
    """Export schemas to ``schemas_dir``."""
    schemas_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for name, model in SCHEMAS.items():
        path = schemas_dir / f"{name}.schema.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(model.model_json_schema(by_alias=True), f, indent=2, ensure_ascii=False)
        print(f"Exported {name} schema to {path}")
        written.append(path)
    return written


if __name__ == "__main__":
    main()
