"""Export job execution."""

from vcinventory.jobs.runner import ExportRunner, ExportResult, ErrorCategory

__all__ = ["ExportRunner", "ExportResult", "ErrorCategory"]
