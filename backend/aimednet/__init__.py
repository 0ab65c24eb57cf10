"""AIMedNet secure messaging: client-side E2EE and the reference backend."""

__version__ = "1.0.0"
