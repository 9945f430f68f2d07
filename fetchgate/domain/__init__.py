"""Domain Layer: value objects, outcome types, ports and events.

Has no dependency on the infrastructure layer.
"""
