"""Core Application Layer: orchestrates the resolve use case.

Connects the domain layer with the infrastructure layer through interfaces.
"""
