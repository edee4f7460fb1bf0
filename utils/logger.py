"""Logfire instrumentation helpers for the application."""

import logfire


def instrument_libraries():
    """Instrument the MongoDB driver for query-level traces."""
    logfire.instrument_pymongo()
