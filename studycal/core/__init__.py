"""Core infrastructure for studycal: configuration, logging, time helpers and errors."""
