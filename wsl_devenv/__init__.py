"""WSL2 Ubuntu development environment maintenance tooling."""

__version__ = "1.0.0"
