"""
Radar Data Provider.

Loads the radar YAML file into a read-only RadarSnapshot. The file is read in
full on every call; there is no caching, so each snapshot reflects the file at
call time.

Expected file layout::

    LastModified: "2025-03-01"
    Items:
      - Label: Kubernetes
        Quadrant: Platforms
        Ring: Adopted
        Moved: false
        Description: Container orchestration
        Owners: Platform Team
"""

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from src.core.errors import DataUnavailable
from src.core.store import RadarItem, RadarSnapshot

logger = logging.getLogger(__name__)

# YAML key -> (RadarItem field, expected type)
ITEM_FIELDS = {
    "Label": ("label", str),
    "Quadrant": ("quadrant", str),
    "Ring": ("ring", str),
    "Moved": ("moved", bool),
    "Description": ("description", str),
    "Owners": ("owners", str),
}


class RadarDataProvider:
    """
    Read-only access to the radar data file.

    Parameters
    ----------
    data_path : Union[str, Path]
        Path to the radar YAML file
    """

    def __init__(self, data_path: Union[str, Path]):
        self.data_path = Path(data_path)
        logger.info(f"Initialized RadarDataProvider with data file: {self.data_path}")

    def fetch_snapshot(self) -> RadarSnapshot:
        """
        Load the current snapshot from disk.

        Returns
        -------
        RadarSnapshot
            All items in file order plus the last-modified marker

        Raises
        ------
        DataUnavailable
            If the file cannot be read or is not valid radar YAML
        """
        try:
            raw = self.data_path.read_bytes()
        except OSError as e:
            raise DataUnavailable("Failed to read radar data", cause=e) from e

        # Undecodable bytes raise yaml.reader.ReaderError
        try:
            document = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise DataUnavailable("Failed to parse radar data", cause=e) from e

        if document is None:
            logger.warning(f"Radar data file is empty: {self.data_path}")
            return RadarSnapshot()

        if not isinstance(document, dict):
            cause = TypeError(f"expected a mapping at top level, got {type(document).__name__}")
            raise DataUnavailable("Failed to parse radar data", cause=cause) from cause

        snapshot = RadarSnapshot(
            last_modified=self._parse_last_modified(document.get("LastModified")),
            items=tuple(self._parse_items(document.get("Items"))),
        )
        logger.info(f"Loaded {len(snapshot.items)} radar items (last modified: {snapshot.last_modified!r})")
        return snapshot

    def _parse_last_modified(self, value: Any) -> str:
        """Return the marker as a string; YAML dates are converted to ISO format."""
        if isinstance(value, str):
            return value
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return ""

    def _parse_items(self, raw_items: Any) -> List[RadarItem]:
        if not isinstance(raw_items, list):
            return []

        items = []
        for raw in raw_items:
            item = self._parse_item(raw)
            if item is not None:
                items.append(item)
        return items

    def _parse_item(self, raw: Any) -> Optional[RadarItem]:
        """
        Build one item, keeping only fields of the expected type.

        Fields with a missing or mistyped value fall back to the default.
        Non-mapping entries are skipped.
        """
        if not isinstance(raw, dict):
            logger.debug(f"Skipping non-mapping radar entry: {raw!r}")
            return None

        values: Dict[str, Any] = {"label": "", "quadrant": "", "ring": ""}
        for key, (field_name, expected_type) in ITEM_FIELDS.items():
            value = raw.get(key)
            if isinstance(value, expected_type):
                values[field_name] = value
        return RadarItem(**values)
