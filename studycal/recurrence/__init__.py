"""Recurrence rules: weekday table, rule codec and instance expansion."""
