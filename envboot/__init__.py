"""envboot — bootstrap a local environment from recipe executables."""

__version__ = "0.1.0"
