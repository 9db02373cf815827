"""Regex matchers that propose learnable facts from a single chat message.

Everything here is pure: no I/O, no clock reads (the correction matcher takes
``now`` as an argument). Matchers return ``LearningExtraction`` records; the
learning engine decides how to persist them.
"""

import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from freight_learning.utils.clock import epoch_millis

EXTRACTION_TYPES = ("terminology", "preference", "correction", "pattern", "product")
EXTRACTION_SOURCES = ("explicit", "implicit", "correction")

TERMINOLOGY_CONFIDENCE = 0.9
PREFERENCE_CONFIDENCE = 0.8
IMPLICIT_PREFERENCE_CONFIDENCE = 0.5
CORRECTION_CONFIDENCE = 0.95
PRODUCT_CONFIDENCE = 0.9

IMPLICIT_CHART_TOOL = "add_report_section"


@dataclass
class LearningExtraction:
    """A fact proposed from one message, before persistence."""
    type: str          # terminology, preference, correction, pattern, product
    key: str
    value: str
    confidence: float
    source: str        # explicit, implicit, correction
    context: Optional[str] = None

    def __post_init__(self):
        if self.type not in EXTRACTION_TYPES:
            raise ValueError(f"Unknown extraction type: {self.type}")
        if self.source not in EXTRACTION_SOURCES:
            raise ValueError(f"Unknown extraction source: {self.source}")


@dataclass
class LearningFlag:
    """Hidden ``<learning_flag>`` block the assistant emits after a clarification."""
    term: str
    user_said: Optional[str] = None
    ai_understood: Optional[str] = None
    maps_to_field: Optional[str] = None
    confidence: str = "medium"
    suggested_scope: Optional[str] = None
    suggested_category: Optional[str] = None


# ---------------------------------------------------------------------------
# Pattern batteries. Order matters: terminology and preferences keep every
# match, corrections stop at the first (most specific first).
# ---------------------------------------------------------------------------

_Q = r"['\"‘’“”]"        # straight or curly quote
_NQ = r"[^'\"‘’“”]"      # anything but a quote
_VAL = r"[^'\"‘’“”.!?\n]+"  # definition text up to a quote or sentence end
_TERM = r"[^'\"‘’“”.!?;,:\n]"  # unquoted term text, stops at clause punctuation
_MEAN = r"(?:i mean|that means|refers to)"

TERMINOLOGY_PATTERNS = [
    # when I say "hot load", I mean an expedited shipment
    re.compile(
        rf"\bwhen i say\s+{_Q}({_NQ}+){_Q}\s*,?\s*(?:i mean|that means|refers to|is)\s+{_Q}?({_VAL}){_Q}?",
        re.IGNORECASE,
    ),
    # when I say the lane is hot, I mean it has too many loads
    re.compile(
        rf"\bwhen i say\s+(?!{_Q})({_TERM}+?)\s*,?\s*\b{_MEAN}\s+{_Q}?({_VAL}){_Q}?",
        re.IGNORECASE,
    ),
    # when I say deadhead is empty miles  (only with no "I mean" later on)
    re.compile(
        rf"\bwhen i say\s+(?!{_Q})(?![^.!?\n]*\b{_MEAN}\b)({_TERM}+?)\s+is\s+{_Q}?({_VAL}){_Q}?",
        re.IGNORECASE,
    ),
    # "reefer" means refrigerated trailer  (clause-initial, non-pronoun subject)
    re.compile(
        rf"(?:^|[.!?;:,]\s*)(?!\s*(?:when i say|i|we|you|they|it|this|that)\b)\s*{_Q}?({_TERM}+?){_Q}?\s*"
        rf"\b(?:means?|refers? to|is our|is my)\s+{_Q}?({_VAL}){_Q}?",
        re.IGNORECASE,
    ),
    # our term for "hot shot" is a same-day pickup
    re.compile(
        rf"\b(?:we call|i call|our term for)\s+{_Q}({_NQ}+){_Q}\s+(?:is|means?)\s+{_Q}?({_VAL}){_Q}?",
        re.IGNORECASE,
    ),
    # our term for drayage is a short container move
    re.compile(
        rf"\b(?:we call|i call|our term for)\s+(?!{_Q})({_TERM}+?)\s+(?:is|means?)\s+{_Q}?({_VAL}){_Q}?",
        re.IGNORECASE,
    ),
    # LTL stands for less than truckload
    re.compile(r"\b((?-i:[A-Z]{2,6}))\s*\b(?:stands for|means)\s+([^.!?]+)", re.IGNORECASE),
    # FTL = full truckload
    re.compile(r"\b((?-i:[A-Z]{2,6}))\s*=\s*([^.!?]+)", re.IGNORECASE),
]

PREFERENCE_PATTERNS = {
    "chart_type": [
        re.compile(r"\b(?:i (?:prefer|like|want)|always use|default to)\s+(bar|line|pie|area|table)", re.IGNORECASE),
        re.compile(
            r"\b(?:show|display|make)\s+(?:it|this|that|them)\s+(?:as|in)\s+(?:an?\s+)?(bar|line|pie|area|table)",
            re.IGNORECASE,
        ),
    ],
    "sort_order": [
        re.compile(
            r"\bsort(?:ed)?\s+(?:by\s+)?\w+\s+(asc|desc|ascending|descending|high.to.low|low.to.high)\b",
            re.IGNORECASE,
        ),
        re.compile(r"\b(?:highest|largest|biggest|top)\s+(?:first|to\s+lowest)\b", re.IGNORECASE),
        re.compile(r"\b(?:lowest|smallest|bottom)\s+(?:first|to\s+highest)\b", re.IGNORECASE),
    ],
    "date_range": [
        re.compile(
            r"\b(?:always|usually|typically)\s+(?:look at|use|want)\s+(?:the\s+)?(?:last\s+|past\s+)?"
            r"(\d+\s*(?:day|week|month|quarter|year)s?)\b",
            re.IGNORECASE,
        ),
    ],
}

IMPLICIT_CHART_PATTERN = re.compile(r"\b(bar|line|pie|area|treemap)\s*chart", re.IGNORECASE)

CORRECTION_PATTERNS = [
    re.compile(r"\byou said (.+?) but (?:it[’']s|it should be|the correct answer is) (.+)", re.IGNORECASE),
    re.compile(
        r"\b(?:no|wrong|incorrect|that[’']s not right)\b,?\s*(?:it[’']s|it should be|the correct|actually)\s+(.+)",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:actually|correction|to clarify),?\s+(.+)", re.IGNORECASE),
]

PRODUCT_PATTERNS = [
    re.compile(r"\b(?:we (?:sell|ship)|our products? (?:are|include))\s+([^.!?\n]+)", re.IGNORECASE),
    re.compile(r"\bproduct types?:\s*([^.!?\n]+)", re.IGNORECASE),
]
_PRODUCT_SPLIT = re.compile(r",\s*|\s+and\s+", re.IGNORECASE)
MAX_PRODUCT_LENGTH = 50

LEARNING_FLAG_PATTERN = re.compile(r"<learning_flag>([\s\S]*?)</learning_flag>")

_CHART_TYPES = ("bar", "line", "pie", "area", "table")
_ASCENDING_PREFIXES = ("asc", "low", "smallest", "bottom")
_DESCENDING_TOKENS = ("desc", "high", "largest", "biggest", "top")


def normalize_preference_value(category: str, value: str) -> str:
    """Map a raw captured preference value onto its canonical form.

    Args:
        category: Preference category (chart_type, sort_order, ...)
        value: Raw captured text

    Returns:
        Canonical lowercase value
    """
    lower = value.strip().lower()

    if category == "chart_type":
        for chart_type in _CHART_TYPES:
            if chart_type in lower:
                return chart_type
        return lower

    if category == "sort_order":
        # "low to high" mentions "high" but is ascending
        if lower.startswith(_ASCENDING_PREFIXES):
            return "ascending"
        if any(token in lower for token in _DESCENDING_TOKENS):
            return "descending"
        return "ascending"

    return lower


def extract_terminology(message: str) -> list[LearningExtraction]:
    """Find terminology definitions; every firing pattern contributes."""
    extractions = []
    for pattern in TERMINOLOGY_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        key = match.group(1).strip().lower()
        value = match.group(2).strip()
        if not key or not value:
            continue
        extractions.append(
            LearningExtraction(
                type="terminology",
                key=key,
                value=value,
                confidence=TERMINOLOGY_CONFIDENCE,
                source="explicit",
                context=message,
            )
        )
    return extractions


def extract_preferences(message: str, tools_used: Optional[list[str]] = None) -> list[LearningExtraction]:
    """Find stated preferences, plus a chart preference implied by tool use.

    Args:
        message: The user's message
        tools_used: Tool names the assistant invoked this turn

    Returns:
        Preference extractions in pattern order
    """
    extractions = []

    for category, patterns in PREFERENCE_PATTERNS.items():
        for pattern in patterns:
            match = pattern.search(message)
            if not match:
                continue
            raw = match.group(1) if match.lastindex else match.group(0)
            extractions.append(
                LearningExtraction(
                    type="preference",
                    key=category,
                    value=normalize_preference_value(category, raw),
                    confidence=PREFERENCE_CONFIDENCE,
                    source="explicit",
                    context=message,
                )
            )

    if tools_used and IMPLICIT_CHART_TOOL in tools_used:
        chart_match = IMPLICIT_CHART_PATTERN.search(message)
        if chart_match:
            extractions.append(
                LearningExtraction(
                    type="preference",
                    key="chart_type",
                    value=chart_match.group(1).lower(),
                    confidence=IMPLICIT_PREFERENCE_CONFIDENCE,
                    source="implicit",
                )
            )

    return extractions


def extract_corrections(message: str, now: datetime) -> list[LearningExtraction]:
    """Detect a correction of something the assistant said.

    At most one correction is produced per message; patterns are tried from
    most to least specific.

    Args:
        message: The user's message
        now: Time of the turn, used for the key and payload timestamp

    Returns:
        Empty list or a single correction extraction
    """
    for pattern in CORRECTION_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        original = match.group(1).strip()
        corrected = match.group(2).strip() if match.lastindex and match.lastindex >= 2 else original
        payload = {
            "originalText": original,
            "correctedText": corrected or original,
            "timestamp": now.isoformat(),
        }
        return [
            LearningExtraction(
                type="correction",
                key=f"correction_{epoch_millis(now)}",
                value=json.dumps(payload),
                confidence=CORRECTION_CONFIDENCE,
                source="correction",
                context=message,
            )
        ]
    return []


def extract_products(message: str) -> list[LearningExtraction]:
    """Find product lines the customer says they sell or ship."""
    extractions = []
    seen = set()

    for pattern in PRODUCT_PATTERNS:
        for match in pattern.finditer(message):
            for item in _PRODUCT_SPLIT.split(match.group(1)):
                product = item.strip().strip(".").strip()
                if not product or len(product) >= MAX_PRODUCT_LENGTH:
                    continue
                key = re.sub(r"\s+", "_", product.lower())
                if key in seen:
                    continue
                seen.add(key)
                extractions.append(
                    LearningExtraction(
                        type="product",
                        key=key,
                        value=product,
                        confidence=PRODUCT_CONFIDENCE,
                        source="explicit",
                        context=message,
                    )
                )

    return extractions


def parse_learning_flag(text: str) -> Optional[LearningFlag]:
    """Parse the first ``<learning_flag>`` block in an assistant response.

    Returns:
        LearningFlag, or None when there is no block or it lacks a term
    """
    if not text:
        return None
    match = LEARNING_FLAG_PATTERN.search(text)
    if not match:
        return None

    fields = {}
    for line in match.group(1).strip().splitlines():
        name, sep, value = line.partition(":")
        name, value = name.strip(), value.strip()
        if sep and name and value:
            fields[name] = value

    term = fields.get("term")
    if not term:
        return None

    confidence = fields.get("confidence", "medium").lower()
    if confidence not in ("high", "medium", "low"):
        confidence = "medium"

    return LearningFlag(
        term=term,
        user_said=fields.get("user_said"),
        ai_understood=fields.get("ai_understood"),
        maps_to_field=fields.get("maps_to_field"),
        confidence=confidence,
        suggested_scope=fields.get("suggested_scope"),
        suggested_category=fields.get("suggested_category"),
    )


def strip_learning_flags(text: str) -> str:
    """Remove hidden learning flag blocks before showing a response."""
    return LEARNING_FLAG_PATTERN.sub("", text).strip()
