"""chaos-lab: fault injection and resilience reporting for HTTP endpoints."""

__version__ = "0.1.0"
