"""Core (UI-agnostic) dengue vector survey dashboard logic.

This package contains:
- data sources and file discovery (local directory or HTTP, probed concurrently)
- CSV parsing and the dataset store
- filter normalization and the month / district filter engine
- aggregation, month-over-month change and Breteau risk classification
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
