"""Response parsing utilities for converting generative-AI output to models"""

import json
import logging
from typing import Any, Dict, List, Optional

from combineti.models import PredictionBundle, PredictionItem
from combineti.models.prediction import MAX_BETS

from .errors import PredictionParseError

logger = logging.getLogger(__name__)


class PredictionResponseParser:
    """Parser for the JSON text returned by the prediction service"""

    @staticmethod
    def extract_json_from_text(text: str) -> Optional[Any]:
        """
        Extract and parse JSON from model output

        The service is asked for raw JSON, but models sometimes wrap it in
        markdown code blocks like:
        ```json
        {"key": "value"}
        ```

        This method handles both bare JSON and markdown-wrapped JSON.

        Args:
            text: Raw text returned by the model

        Returns:
            Parsed JSON value or None if parsing fails
        """
        if not text:
            logger.warning("Empty prediction response text")
            return None

        if '```json' in text:
            try:
                json_text = text.split('```json')[1].split('```')[0].strip()
                return json.loads(json_text)
            except (IndexError, json.JSONDecodeError) as e:
                logger.debug(f"Failed to parse markdown JSON block: {e}")

        if '```' in text:
            try:
                json_text = text.split('```')[1].split('```')[0].strip()
                return json.loads(json_text)
            except (IndexError, json.JSONDecodeError) as e:
                logger.debug(f"Failed to parse generic code block: {e}")

        try:
            return json.loads(text.strip())
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse prediction response as JSON: {e}\nText: {text[:200]}")
            return None

    @staticmethod
    def parse_prediction_item(raw: Dict[str, Any]) -> PredictionItem:
        """
        Build a PredictionItem from one raw entry

        Confidence given as a percentage (e.g. 72) is scaled to 0-1 and
        extra bets beyond the third are dropped. Anything else that does
        not fit the model raises.
        """
        if not isinstance(raw, dict):
            raise PredictionParseError(f"prediction entry is not an object: {raw!r}")

        missing = [
            key for key in (
                "level", "description", "confidence_score",
                "justification", "bets", "suggested_multiplier",
            )
            if key not in raw
        ]
        if missing:
            raise PredictionParseError(f"prediction entry missing fields: {', '.join(missing)}")

        try:
            confidence = float(raw["confidence_score"])
            if confidence > 1:
                confidence = confidence / 100

            bets = raw["bets"]
            if not isinstance(bets, list):
                raise PredictionParseError("bets must be a list")

            return PredictionItem(
                level=raw["level"],
                description=str(raw["description"]),
                confidence_score=confidence,
                justification=str(raw["justification"]),
                bets=[str(b) for b in bets][:MAX_BETS],
                suggested_multiplier=float(raw["suggested_multiplier"]),
            )
        except PredictionParseError:
            raise
        except (TypeError, ValueError) as e:
            raise PredictionParseError(f"invalid prediction entry: {e}") from e

    @staticmethod
    def parse_prediction_bundle(response_text: str, game_id: Optional[str] = None) -> PredictionBundle:
        """
        Parse model output into a PredictionBundle

        Expected JSON structure:
        {
            "predictions": [
                {"level": "Conservative", "description": "...", "confidence_score": 0.8,
                 "justification": "...", "bets": ["...", "..."], "suggested_multiplier": 1.9},
                ...
            ]
        }

        Invalid entries are skipped with a warning.

        Raises:
            PredictionParseError: no JSON, wrong top-level shape, or no valid entry
        """
        data = PredictionResponseParser.extract_json_from_text(response_text)
        if data is None:
            raise PredictionParseError("response is not valid JSON", game_id)
        if not isinstance(data, dict) or not isinstance(data.get("predictions"), list):
            raise PredictionParseError("response has no 'predictions' array", game_id)

        items: List[PredictionItem] = []
        for raw in data["predictions"]:
            try:
                items.append(PredictionResponseParser.parse_prediction_item(raw))
            except PredictionParseError as e:
                logger.warning(f"Skipping prediction entry for match {game_id}: {e}")

        if not items:
            raise PredictionParseError("no valid prediction entries", game_id)

        return PredictionBundle(predictions=items)
