"""
Classification Normalization
============================

Turns an unstructured classifier response into a validated
``FeedbackAnalysis``.

The inference service is expected to answer with a JSON object, but in
practice the object arrives wrapped in prose or a fenced code block, with
missing fields, out-of-range urgency values or wrongly-cased labels. Every
field is coerced here; anything that cannot be parsed at all raises
``ValueError`` and the caller falls back to ``FeedbackAnalysis.default()``.
"""

import json
import math
import re
from typing import Any, List

from src.config import (
    Sentiment, Team, VALID_SENTIMENTS, VALID_TEAMS,
    DEFAULT_URGENCY, MIN_URGENCY, MAX_URGENCY
)
from src.feedback.domain.entities import FeedbackAnalysis, CategoryLabel


_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def extract_json_object(raw: str) -> str:
    """
    Slice the JSON object out of a raw classifier response.

    Strips a fenced block if present, then keeps everything between the
    first ``{`` and the last ``}``.

    Raises:
        ValueError: If no brace-delimited object is present
    """
    text = (raw or "").strip()

    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        text = fenced.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ValueError("No JSON object found in classifier response")

    return text[start:end + 1]


def coerce_urgency(value: Any) -> int:
    """Parse urgency as a number and clamp it into [1, 10]; default 5."""
    if isinstance(value, bool) or value is None:
        return DEFAULT_URGENCY

    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return DEFAULT_URGENCY

    if not math.isfinite(number):
        return DEFAULT_URGENCY

    rounded = int(math.floor(number + 0.5))
    return min(MAX_URGENCY, max(MIN_URGENCY, rounded))


def coerce_sentiment(value: Any) -> str:
    if isinstance(value, str):
        for sentiment in VALID_SENTIMENTS:
            if value.strip().lower() == sentiment.lower():
                return sentiment
    return Sentiment.NEUTRAL


def coerce_team(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in VALID_TEAMS:
        return value.strip().lower()
    return Team.PRODUCT


def coerce_keywords(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    keywords = []
    for keyword in value:
        if isinstance(keyword, bool) or not isinstance(keyword, (str, int, float)):
            continue
        text = str(keyword).strip()
        if text:
            keywords.append(text)
    return keywords


def normalize_analysis(data: Any) -> FeedbackAnalysis:
    """
    Coerce a parsed classifier payload into a ``FeedbackAnalysis``.

    Raises:
        ValueError: If the payload is not a JSON object
    """
    if not isinstance(data, dict):
        raise ValueError("Classifier payload is not a JSON object")

    return FeedbackAnalysis(
        category=CategoryLabel.parse(data.get("category")).label,
        sentiment=coerce_sentiment(data.get("sentiment")),
        urgency=coerce_urgency(data.get("urgency")),
        suggested_team=coerce_team(data.get("suggestedTeam", data.get("suggested_team"))),
        keywords=coerce_keywords(data.get("keywords")),
    )


def parse_analysis(raw: str) -> FeedbackAnalysis:
    """
    Parse a raw classifier response end to end.

    Raises:
        ValueError: If the response holds no parsable JSON object
    """
    payload = extract_json_object(raw)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ValueError(f"Classifier response is not valid JSON: {e}") from e
    return normalize_analysis(data)


class ClassificationPromptBuilder:
    """
    Builds prompts for feedback classification.

    All prompt text lives here so the classifier and its tests agree on it.
    """

    SYSTEM_PROMPT = """You are an expert Product Manager assistant specializing in feedback triage. Your job is to analyze user feedback and classify it accurately.

CLASSIFICATION RULES:

**Category** (choose the MOST specific match):
- "Bug": something is broken, crashing, not working as expected, error messages
- "Performance": slow, laggy, high memory/CPU, timeouts, loading issues
- "Security": vulnerabilities, data exposure, authentication issues, XSS, injection
- "UX": confusing interface, hard to find features, poor onboarding, accessibility
- "Feature Request": asking for new functionality, integrations, enhancements
- "Billing": payment issues, subscription problems, pricing confusion, refunds
- "Praise": positive feedback, compliments, appreciation (no action needed)
- "Other": does not fit any category above

**Sentiment**:
- "Negative": frustrated, angry, disappointed, complaining
- "Positive": happy, satisfied, grateful, excited
- "Neutral": factual, informational, no strong emotion

**Urgency** (1-10 scale):
- 9-10: system down, security breach, data loss, many users affected
- 7-8: major feature broken, significant user impact, repeated complaints
- 5-6: notable issue, some users affected, workarounds exist
- 3-4: minor annoyance, edge case, low impact
- 1-2: nice-to-have, no real impact, cosmetic issues

**Team Assignment**:
- "security": any security-related issue, vulnerabilities, auth problems
- "engineering": bugs, crashes, technical errors, performance issues
- "billing": payment, subscription, pricing, refund issues
- "product": feature requests, UX feedback, design suggestions
- "support": how-to questions, account access, general help requests

**Keywords**: extract 2-4 key terms that describe the core issue.

RESPOND WITH ONLY THIS JSON (no other text):
{"category":"...","sentiment":"...","urgency":N,"suggestedTeam":"...","keywords":["...","..."]}"""

    @classmethod
    def build_prompt(cls, text: str) -> str:
        """Build the user message for one feedback item."""
        return f'Analyze this feedback:\n\n"{text}"'

    @classmethod
    def get_system_prompt(cls) -> str:
        """Get the system prompt for classification."""
        return cls.SYSTEM_PROMPT

    @classmethod
    def build_messages(cls, text: str) -> List[dict]:
        return [
            {"role": "system", "content": cls.get_system_prompt()},
            {"role": "user", "content": cls.build_prompt(text)}
        ]
