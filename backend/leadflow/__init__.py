"""Leadflow - cold outreach, reply routing and lead lifecycle automation."""

__version__ = "1.0.0"
