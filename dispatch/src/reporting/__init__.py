"""
Reporting package: sinks for accepted jobs, verdicts and log events.
"""

from dispatch.src.reporting.reporters import JsonFileReporter, LogEventCollector, LoggingReporter

__all__ = ["JsonFileReporter", "LogEventCollector", "LoggingReporter"]
