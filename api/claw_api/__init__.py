"""HTTP API for the OpenClaw droplet service."""

__version__ = "0.1.0"
