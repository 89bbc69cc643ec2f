"""SnapMarket — photo-to-listing marketplace backend."""

__version__ = "0.1.0"
