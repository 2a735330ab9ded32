"""Record converters: upstream issue-tracker payloads to CSV rows.

Values are not CSV-escaped here; see `planstudio/exports/writers.py`.
"""
