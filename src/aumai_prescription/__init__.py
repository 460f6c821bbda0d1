"""Treatment-plan rule evaluation engine: forward chaining and best-evidence scoring."""

from .core import evaluate

__version__ = "0.1.0"

__all__ = ["evaluate", "__version__"]
