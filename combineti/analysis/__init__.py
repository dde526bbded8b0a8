from .gemini_predictor import GeminiPredictor, MatchContext, build_prompt

__all__ = [
    "GeminiPredictor",
    "MatchContext",
    "build_prompt",
]
