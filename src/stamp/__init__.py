"""stamp - scaffold project trees from reusable templates."""

__version__ = "0.1.0"
