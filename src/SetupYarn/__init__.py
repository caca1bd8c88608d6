"""SetupYarn: enable Yarn through Corepack and cache its install state in CI."""

__version__ = "0.1.0"

__all__ = ["__version__"]
