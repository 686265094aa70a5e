"""Spreadsheet ingestion (delimited text and workbook files)."""
