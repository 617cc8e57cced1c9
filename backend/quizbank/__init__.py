"""Practice-test engine: test generation, response scoring and progress statistics."""

__version__ = "1.0.0"
