"""Command line interface (``python -m hr_import.cli`` / ``hr-import``)."""
