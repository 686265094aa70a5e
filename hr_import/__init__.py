"""HR bulk import and period aggregation engine.

Spreadsheet uploads (biometric attendance logs, monthly performance metrics)
are resolved against the employee directory, reviewed, committed to the store
and later rolled up into quarter / half-year / year summaries.
"""

__version__ = "0.1.0"
