"""Core (UI-agnostic) contract compliance logic.

This package contains:
- spreadsheet import (XLSX/XLS/CSV -> zone and route records)
- compliance filters and thresholds
- analytics compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
