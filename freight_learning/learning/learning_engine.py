"""Learning Engine for the freight analytics assistant.

Runs the matchers over one conversation turn and folds what they find into the
customer's profile: terminology with confidence reinforcement, preference
weights with reinforce/decay, and an append-only correction log.

Storage is best-effort. A failed write is logged and reported through
``TurnLearningResult.failures``; it never raises to the caller, so a storage
outage only means fewer learned facts.
"""

import json
from dataclasses import dataclass, field
from typing import Optional

from freight_learning.config.settings import LearningConfig, settings as default_settings
from freight_learning.learning.matchers import (
    LearningExtraction,
    extract_corrections,
    extract_preferences,
    extract_products,
    extract_terminology,
    parse_learning_flag,
)
from freight_learning.utils.clock import Clock, now_utc, to_naive_utc
from freight_learning.utils.logger import get_logger, turn_context

logger = get_logger(__name__)


@dataclass
class PersistenceFailure:
    """An extraction whose write failed."""
    extraction: LearningExtraction
    error: str
    error_type: str


@dataclass
class TurnLearningResult:
    """Everything learned from one turn, plus what could not be stored."""
    extractions: list[LearningExtraction] = field(default_factory=list)
    failures: list[PersistenceFailure] = field(default_factory=list)
    flagged_term: Optional[str] = None

    @property
    def stored(self) -> list[LearningExtraction]:
        failed = {id(f.extraction) for f in self.failures}
        return [e for e in self.extractions if id(e) not in failed]


def blend_term_confidence(
    existing: Optional[float],
    reinforcement: float = 0.1,
    default: float = 0.5,
) -> float:
    """Confidence after re-observing a term: +reinforcement, capped at 1.0."""
    base = default if existing is None else existing
    return min(base + reinforcement, 1.0)


def reinforce_weights(
    weights: dict[str, float],
    observed: str,
    increment: float,
    decay: float = 0.05,
) -> dict[str, float]:
    """Reinforce one value of a preference category and decay its rivals.

    The observed value gains ``increment`` (capped at 1.0); every other value
    loses ``decay`` (floored at 0). Insertion order is preserved.

    Args:
        weights: Current value -> weight mapping for one category
        observed: The value just observed
        increment: Reinforcement amount
        decay: Amount subtracted from every other value

    Returns:
        New mapping; the input is not modified
    """
    updated = {}
    for value, weight in weights.items():
        if value == observed:
            updated[value] = weight
        else:
            updated[value] = round(max(0.0, weight - decay), 6)
    updated[observed] = round(min(updated.get(observed, 0.0) + increment, 1.0), 6)
    return updated


def pick_learned_value(weights: dict[str, float], threshold: float = 0.3) -> Optional[str]:
    """Highest-weighted value strictly above ``threshold``; first seen wins ties."""
    best_value = None
    best_weight = threshold
    for value, weight in weights.items():
        if weight > best_weight:
            best_value = value
            best_weight = weight
    return best_value


class LearningEngine:
    """Learns terminology, preferences and corrections for one customer.

    Extraction is synchronous and local; each extraction is then persisted in
    turn through ``db_ops`` so a failure can be attributed to it.
    """

    def __init__(
        self,
        db_ops,
        customer_id: int,
        clock: Optional[Clock] = None,
        config: Optional[LearningConfig] = None,
        notification_queue=None,
    ):
        """Initialize LearningEngine.

        Args:
            db_ops: DatabaseOperations instance for storing learnings.
            customer_id: The customer whose profile is updated.
            clock: Callable returning the current time (defaults to UTC now).
            config: Blending constants (defaults to global settings).
            notification_queue: Optional NotificationQueue for assistant
                learning flags.
        """
        self.db_ops = db_ops
        self.customer_id = int(customer_id)
        self.clock = clock or now_utc
        self.config = config or default_settings.learning
        self.notification_queue = notification_queue
        logger.debug("LearningEngine initialized", customer_id=self.customer_id)

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    def process_turn(
        self,
        user_message: str,
        assistant_response: str = "",
        tools_used: Optional[list[str]] = None,
    ) -> list[LearningExtraction]:
        """Extract and persist learnings from one conversation turn.

        Returns every extraction, including ones whose write failed.
        """
        return self.process_turn_detailed(user_message, assistant_response, tools_used).extractions

    def process_turn_detailed(
        self,
        user_message: str,
        assistant_response: str = "",
        tools_used: Optional[list[str]] = None,
    ) -> TurnLearningResult:
        """Extract and persist learnings, reporting storage failures.

        Args:
            user_message: What the customer typed
            assistant_response: The assistant's reply (scanned for learning flags)
            tools_used: Tool names the assistant invoked this turn

        Returns:
            TurnLearningResult with extractions and per-extraction failures
        """
        now = self.clock()
        tools_used = tools_used or []
        result = TurnLearningResult()

        result.extractions.extend(extract_terminology(user_message))
        result.extractions.extend(extract_preferences(user_message, tools_used))
        result.extractions.extend(extract_corrections(user_message, now))
        result.extractions.extend(extract_products(user_message))

        with turn_context(self.customer_id):
            logger.info(
                "Processing conversation turn",
                extraction_count=len(result.extractions),
                tools_used=tools_used,
            )

            for extraction in result.extractions:
                failure = self._store_learning(extraction)
                if failure is not None:
                    result.failures.append(failure)

            result.flagged_term = self._queue_learning_flag(user_message, assistant_response)

            if result.failures:
                logger.warning(
                    "Some learnings were not stored",
                    failed=len(result.failures),
                    total=len(result.extractions),
                )
        return result

    def _store_learning(self, extraction: LearningExtraction) -> Optional[PersistenceFailure]:
        """Persist one extraction; returns a failure record instead of raising."""
        try:
            if extraction.type in ("terminology", "product"):
                self._store_knowledge(extraction)
            elif extraction.type == "preference":
                self._store_preference(extraction)
            elif extraction.type == "correction":
                self._store_correction(extraction)
            else:
                logger.debug("No storage for extraction type", type=extraction.type)
            return None
        except Exception as e:
            logger.error(
                "Failed to store learning",
                customer_id=self.customer_id,
                type=extraction.type,
                key=extraction.key,
                error=str(e),
            )
            return PersistenceFailure(extraction=extraction, error=str(e), error_type=type(e).__name__)

    def _store_knowledge(self, extraction: LearningExtraction) -> None:
        entry = self.db_ops.upsert_knowledge(
            customer_id=self.customer_id,
            key=extraction.key,
            definition=extraction.value,
            confidence=extraction.confidence,
            source=extraction.source,
            blend=lambda existing: blend_term_confidence(
                existing,
                reinforcement=self.config.terminology_reinforcement,
                default=self.config.default_existing_confidence,
            ),
            knowledge_type="term" if extraction.type == "terminology" else "product",
            now=to_naive_utc(self.clock()),
        )
        logger.debug(
            "Knowledge stored",
            customer_id=self.customer_id,
            key=extraction.key,
            confidence=entry.confidence,
        )

    def _store_preference(self, extraction: LearningExtraction) -> None:
        increment = (
            self.config.explicit_increment
            if extraction.source == "explicit"
            else self.config.implicit_increment
        )

        def mutate(preferences: dict) -> dict:
            preferences[extraction.key] = reinforce_weights(
                preferences.get(extraction.key) or {},
                extraction.value,
                increment,
                decay=self.config.competitor_decay,
            )
            return preferences

        stored = self.db_ops.update_profile_preferences(
            self.customer_id, mutate, now=to_naive_utc(self.clock())
        )
        logger.debug(
            "Preference reinforced",
            customer_id=self.customer_id,
            category=extraction.key,
            value=extraction.value,
            weights=stored.get(extraction.key),
        )

    def _store_correction(self, extraction: LearningExtraction) -> None:
        self.db_ops.add_correction(
            customer_id=self.customer_id,
            correction_data=json.loads(extraction.value),
            context=extraction.context,
            now=to_naive_utc(self.clock()),
        )
        logger.info("Correction logged", customer_id=self.customer_id, key=extraction.key)

    def _queue_learning_flag(self, user_message: str, assistant_response: str) -> Optional[str]:
        """Send an assistant learning flag to the review queue, if present."""
        flag = parse_learning_flag(assistant_response)
        if flag is None or self.notification_queue is None:
            return None
        try:
            self.notification_queue.create_notification(
                customer_id=self.customer_id,
                user_query=user_message,
                unknown_term=flag.term,
                ai_response=flag.ai_understood or flag.user_said,
                suggested_field=flag.maps_to_field,
                confidence=flag.confidence,
            )
            return flag.term
        except Exception as e:
            logger.error(
                "Failed to queue learning flag",
                customer_id=self.customer_id,
                term=flag.term,
                error=str(e),
            )
            return None

    # ------------------------------------------------------------------
    # Read-back
    # ------------------------------------------------------------------

    def get_learned_preferences(self) -> dict[str, str]:
        """Dominant value per preference category.

        A category is included only if its top weight is strictly greater
        than the preference threshold (0.3 by default).
        """
        try:
            profile = self.db_ops.get_profile(self.customer_id)
        except Exception as e:
            logger.error("Failed to load preferences", customer_id=self.customer_id, error=str(e))
            return {}

        if profile is None or not profile.preferences:
            return {}

        learned = {}
        for category, weights in profile.preferences.items():
            value = pick_learned_value(weights or {}, self.config.preference_threshold)
            if value is not None:
                learned[category] = value
        return learned

    def get_learned_terminology(self) -> dict[str, str]:
        """Active terms with confidence at or above the terminology floor."""
        try:
            entries = self.db_ops.get_active_knowledge(
                self.customer_id,
                knowledge_type="term",
                min_confidence=self.config.terminology_min_confidence,
            )
        except Exception as e:
            logger.error("Failed to load terminology", customer_id=self.customer_id, error=str(e))
            return {}
        return {entry.key: entry.definition for entry in entries}

    def build_prompt_context(self) -> str:
        """Format learned terminology and preferences for a system prompt.

        Returns:
            Markdown block, or an empty string when nothing has been learned
        """
        terminology = self.get_learned_terminology()
        preferences = self.get_learned_preferences()
        if not terminology and not preferences:
            return ""

        lines = ["## Learned Customer Context"]
        if terminology:
            lines.append("")
            lines.append("**Customer terminology:**")
            for term, definition in terminology.items():
                lines.append(f"- \"{term}\": {definition}")
        if preferences:
            lines.append("")
            lines.append("**Preferences:**")
            for category, value in preferences.items():
                lines.append(f"- {category.replace('_', ' ')}: {value}")
        return "\n".join(lines)
