"""todolens: multi-source TODO extraction, relevance checking and cleanup planning."""

from .errors import ConfigError, MissingInputError, ServiceError, ServiceResponseError, TodoLensError
from .pipeline import TodoPipeline

__all__ = [
    "ConfigError",
    "MissingInputError",
    "ServiceError",
    "ServiceResponseError",
    "TodoLensError",
    "TodoPipeline",
]

__version__ = "0.1.0"
