"""Core (UI-agnostic) dashboard logic.

This package contains:
- data loading (JSON flat files -> pandas)
- filter normalization
- aggregation over dealers, vendors, invoices and rebate earnings
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
