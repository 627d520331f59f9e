"""Unloading point loader with database-first approach, falling back to an Excel file."""

from __future__ import annotations

import logging
from pathlib import Path

from openpyxl import load_workbook

from ..config import settings
from ..db.supabase import get_supabase_client
from ..models.domain import UnloadingPoint

REQUIRED_COLUMNS = {"ID", "Name", "Latitude", "Longitude"}


def _load_points_from_database() -> tuple[UnloadingPoint, ...] | None:
    """Load active unloading points from Supabase. Returns None if database not available or empty."""
    supabase = get_supabase_client()
    if not supabase:
        return None

    try:
        response = supabase.table("unloading_points").select("*").eq("active", True).execute()
        if not response.data:
            return None

        points: list[UnloadingPoint] = []
        for row in response.data:
            try:
                points.append(
                    UnloadingPoint(
                        id=str(row["id"]),
                        name=str(row.get("name") or ""),
                        latitude=float(row["latitude"]),
                        longitude=float(row["longitude"]),
                    )
                )
            except (KeyError, ValueError, TypeError) as e:
                logging.warning(f"Skipping invalid unloading point row: {e}")
                continue

        return tuple(points) if points else None
    except Exception as e:
        logging.debug(f"Database query failed, falling back to file: {e}")
        return None


def _load_points_from_file(source: Path | None = None) -> tuple[UnloadingPoint, ...]:
    """Load unloading points from the Excel workbook. A missing workbook means no points."""
    workbook_path = source or settings.unloading_points_file
    if not workbook_path.exists():
        logging.info(f"Unloading point workbook not found: {workbook_path}")
        return tuple()

    wb = load_workbook(workbook_path, data_only=True, read_only=True)
    sheet = wb.active
    rows = sheet.iter_rows(min_row=1, values_only=True)
    header = next(rows, None)
    if header is None:
        raise ValueError(f"Unloading point workbook '{workbook_path}' is empty.")

    header_map = {name: idx for idx, name in enumerate(header)}
    missing_columns = REQUIRED_COLUMNS - set(header_map)
    if missing_columns:
        raise ValueError(f"Unloading point workbook missing columns: {', '.join(sorted(missing_columns))}")

    points: list[UnloadingPoint] = []
    for row in rows:
        point_id = row[header_map["ID"]]
        lat_value = row[header_map["Latitude"]]
        lon_value = row[header_map["Longitude"]]
        if not point_id or lat_value is None or lon_value is None:
            continue
        points.append(
            UnloadingPoint(
                id=str(point_id).strip(),
                name=str(row[header_map["Name"]] or "").strip(),
                latitude=float(lat_value),
                longitude=float(lon_value),
            )
        )
    return tuple(points)


def get_unloading_points(source: Path | None = None) -> tuple[UnloadingPoint, ...]:
    """Get active unloading points from the database first, fall back to the workbook."""
    db_points = _load_points_from_database()
    if db_points:
        return db_points
    return _load_points_from_file(source)
