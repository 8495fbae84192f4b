"""NiftyChart - live technical indicators for Indian stock charts."""

__version__ = "0.1.0"
