"""cryptoagency: simulated agentic crypto-intelligence agents."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("cryptoagency")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
