"""Ingest adapters producing transaction payload dicts."""

from .csv_records import load_records_csv, to_records

__all__ = ["load_records_csv", "to_records"]
