# src/xml_introspect/services/report_service.py
import logging
from pathlib import Path
from typing import Any, Dict, Union

import pandas as pd

from xml_introspect.dom.models import StructuralProfile

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["tag", "count", "max_depth", "attributes", "children", "text_seen", "examples", "example_path"]


class ProfileReportService:
    """
    Tabular view of a StructuralProfile for inspection and export.

    One row per tag, most frequent first; list-valued fields are flattened to
    comma-separated strings so the frame exports cleanly to CSV.
    """

    def to_frame(self, profile: StructuralProfile) -> pd.DataFrame:
        """
        Builds the per-tag report.

        Args:
            profile (StructuralProfile): The analyzed document.

        Returns:
            pd.DataFrame: Columns as in REPORT_COLUMNS. Empty (with columns)
                          for an empty profile.
        """
        rows = []
        for tag, info in profile.element_types.items():
            first = info.examples[0] if info.examples else None
            rows.append({
                "tag": tag,
                "count": info.count,
                "max_depth": info.max_depth,
                "attributes": ", ".join(info.attributes),
                "children": ", ".join(info.children),
                "text_seen": info.text_seen,
                "examples": len(info.examples),
                "example_path": profile.path_of(first) if first is not None else "",
            })
        df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
        return df.sort_values("count", ascending=False, kind="stable").reset_index(drop=True)

    @staticmethod
    def summary(profile: StructuralProfile) -> Dict[str, Any]:
        return {
            "root_element": profile.root_element,
            "total_elements": profile.total_elements,
            "max_depth": profile.max_depth,
            "distinct_tags": len(profile.element_types),
            "namespaces": dict(profile.namespaces),
            "common_elements": [entry.model_dump() for entry in profile.common_elements],
            "common_attributes": [entry.model_dump() for entry in profile.common_attributes],
            "partial": profile.partial,
            "parse_mode": profile.parse_mode,
            "diagnostics": list(profile.diagnostics),
        }

    def export(self, profile: StructuralProfile, path: Union[str, Path]) -> Path:
        """Writes the report as .csv or .json, chosen by the file suffix."""
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix not in (".csv", ".json"):
            raise ValueError(f"Unsupported report format '{suffix or path.name}'; use a .csv or .json file")

        df = self.to_frame(profile)
        path.parent.mkdir(parents=True, exist_ok=True)
        if suffix == ".csv":
            df.to_csv(path, index=False)
        else:
            df.to_json(path, orient="records", indent=2)
        logger.info(f"Exported profile report ({len(df)} rows) to {path}")
        return path
