"""Custom exception classes outside the HTTP layer"""

from typing import Any, Optional


# ============================================================================
# VALIDATION ERRORS
# ============================================================================

class ValidationError(ValueError):
    """Base validation error for invalid data"""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.field = field
        self.value = value

        full_message = message
        if field and value is not None:
            full_message = f"{message} (field: {field}, value: {value})"
        elif field:
            full_message = f"{message} (field: {field})"

        super().__init__(full_message)


class ConfigError(ValidationError):
    """Error in configuration"""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, field="config", value=config_key)


class PredictionParseError(ValidationError):
    """Generative-AI output that does not match the prediction bundle shape"""

    def __init__(self, message: str, game_id: Optional[str] = None):
        self.game_id = game_id
        super().__init__(message, field="prediction", value=game_id)
