"""studycal - recurring schedule and calendar interchange engine.

Converts between structured recurrence settings, compact rule strings and
calendar documents, and expands recurring tasks into dated occurrences.
Imports are kept light; pull the operations from their modules, e.g.
``studycal.recurrence.rrule_expander.expand_task``.
"""

__version__ = "0.1.0"
