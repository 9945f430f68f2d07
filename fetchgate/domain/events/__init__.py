"""Domain Event definitions.

Represents significant occurrences during a fetch that other parts
of the system might react to (logging, metrics, tests).
"""
