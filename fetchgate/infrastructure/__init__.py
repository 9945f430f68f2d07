"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the gateway to the outside world (upstream HTTP, headless browser,
web server, console, configuration files) and holds the resilience
primitives the core composes.
"""
