"""Batch ingestion of code records from CSV uploads."""

from .csv_pipeline import CsvIngestionPipeline, IngestionResult, parse_row

__all__ = ["CsvIngestionPipeline", "IngestionResult", "parse_row"]
