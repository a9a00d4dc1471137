"""Reporting utilities for scratchnet."""

from .artifacts import write_manifest
from .plots import PlotAdapter
from .sinks import CsvSink, JsonlSink, LoggingSink, log_fit_event
from .summary import write_summary

__all__ = [
    "CsvSink",
    "JsonlSink",
    "LoggingSink",
    "PlotAdapter",
    "log_fit_event",
    "write_manifest",
    "write_summary",
]
