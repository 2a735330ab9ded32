"""CSV exports: formatting, file naming and delivery.

- writers.py: field escaping, line rendering, document assembly
- files.py: file names, byte size estimates, delivery to a sink
- service.py: caller-owned export service returning ExportResult
"""
