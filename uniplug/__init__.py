"""uniplug - configuration-driven plugin engines for a tool-version manager."""

__version__ = "0.1.0"
