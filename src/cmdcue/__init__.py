"""cmdcue: stream a model's answer, pick the `@run[...]` commands it suggests, run them."""

__version__ = "0.1.0"
