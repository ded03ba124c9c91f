"""modelsmith -- turn a declarative data-model schema into a backend project."""

__version__ = "0.1.0"
