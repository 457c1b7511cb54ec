"""
Domain layer for the expiry digest job.

This layer contains:
- Data models (users, items, per-user and per-run results)
- Expiry date rules (UTC calendar-date matching)
- The digest job (per-user fetch, filter, render, send)
"""
