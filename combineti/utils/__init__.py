from .response_parser import PredictionResponseParser
from .errors import (
    ValidationError,
    ConfigError,
    PredictionParseError,
)
from .clock import now_ms

__all__ = [
    'PredictionResponseParser',
    'ValidationError',
    'ConfigError',
    'PredictionParseError',
    'now_ms',
]
