"""
Report output.

See :mod:`repo_stat.report.reporter` for the CSV, Markdown and XML
reporters.
"""

from .reporter import REPORT_FORMATS, Reporter, create_reporter  # noqa: F401
