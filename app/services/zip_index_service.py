"""
ZIP Code Index

Read-only lookup of ZIP code -> coordinates and place names, loaded once at
startup from a JSON file (either a list of records or a {zip: record} map).
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_TERRITORIES = ("PR", "GU", "VI", "MP", "AS", "UM")


@dataclass(frozen=True)
class ZipRecord:
    zip: str
    lat: float
    lng: float
    city: str = ""
    state: str = ""
    county: str = ""
    population: Optional[int] = None


def normalize_zip(value: Any) -> str:
    return str(value or "").strip().zfill(5)


class ZipCodeIndex:
    def __init__(self):
        self.zips: dict[str, ZipRecord] = {}
        self.loaded = False

    def __len__(self) -> int:
        return len(self.zips)

    def load_from_json(self, path: str | Path) -> int:
        """
        Load records from a JSON file.

        Returns:
            Number of ZIP codes in the index after loading

        Raises:
            OSError, ValueError: If the file is missing or not valid JSON
        """
        logger.info(f"Loading ZIP codes from {path}...")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        self.load_records(data)
        logger.info(f"Loaded {len(self.zips)} ZIP codes")
        return len(self.zips)

    def load_records(self, data: Any) -> None:
        if isinstance(data, list):
            for record in data:
                if isinstance(record, dict):
                    self.add_record(record)
        elif isinstance(data, dict):
            for zip_code, record in data.items():
                if isinstance(record, dict):
                    self.add_record({**record, "zip": normalize_zip(zip_code)})
        self.loaded = True

    def add_record(self, record: dict) -> bool:
        """Add one record. Records without a valid ZIP or numeric coordinates are skipped."""
        zip_code = normalize_zip(record.get("zip") or record.get("zipcode"))
        if len(zip_code) != 5:
            return False

        try:
            lat = float(record["lat"])
            lng = float(record["lng"])
        except (KeyError, TypeError, ValueError):
            return False
        if lat != lat or lng != lng:  # NaN
            return False

        population = record.get("population")
        try:
            population = int(population) if population not in (None, "") else None
        except (TypeError, ValueError):
            population = None

        self.zips[zip_code] = ZipRecord(
            zip=zip_code,
            lat=lat,
            lng=lng,
            city=record.get("city") or "",
            state=record.get("state_id") or record.get("state") or "",
            county=record.get("county_name") or record.get("county") or "",
            population=population,
        )
        return True

    def get(self, zip_code: str) -> Optional[ZipRecord]:
        return self.zips.get(normalize_zip(zip_code))

    def get_all_state_zips(self, exclude_territories: Iterable[str] = DEFAULT_EXCLUDED_TERRITORIES) -> list[str]:
        """ZIPs with a state code, excluding territories."""
        excluded = set(exclude_territories)
        return [z for z, record in self.zips.items() if record.state and record.state not in excluded]

    def stats(self) -> dict:
        return {"total_records": len(self.zips), "loaded": self.loaded}

    def clear(self) -> None:
        self.zips.clear()
        self.loaded = False
