"""Rule-based topic suggestions used when the generator is unavailable."""

import structlog

from medmaster.models.progress import Priority, ProgressRecord, SuggestedTopic

logger = structlog.get_logger()

WEAK_MIN_ATTEMPTS = 3
WEAK_ACCURACY_THRESHOLD = 70.0
MAX_WEAK = 2
MAX_FAVORITES = 2
MIN_SUGGESTIONS = 3
MAX_SUGGESTIONS = 5

COMMON_SPECIALTIES = [
    "Cardiologia",
    "Clínica Médica",
    "Pediatria",
    "Cirurgia Geral",
    "Neurologia",
]


class RuleBasedSuggester:
    """Ranks specialties from the record alone.

    1. Weak specialties (>= 3 attempts, < 70% accuracy), weakest first, at most 2.
    2. Favourite specialties never attempted, at most 2.
    3. Common specialties never attempted, until there are 3 suggestions.
    """

    def __init__(self, common_specialties: list[str] | None = None):
        self.common_specialties = common_specialties or COMMON_SPECIALTIES

    def suggest(self, record: ProgressRecord) -> list[SuggestedTopic]:
        specialties = record.specialties or {}
        suggestions: list[SuggestedTopic] = []
        seen: set[str] = set()

        def add(topic: SuggestedTopic) -> None:
            if topic.specialty not in seen and len(suggestions) < MAX_SUGGESTIONS:
                seen.add(topic.specialty)
                suggestions.append(topic)

        weak = sorted(
            (
                (name, stats.accuracy)
                for name, stats in specialties.items()
                if stats.total >= WEAK_MIN_ATTEMPTS and stats.accuracy < WEAK_ACCURACY_THRESHOLD
            ),
            key=lambda pair: pair[1],
        )
        for name, accuracy in weak[:MAX_WEAK]:
            add(SuggestedTopic(
                specialty=name,
                reason=f"Reinforce this area: your accuracy is {accuracy:.0f}%",
                priority=Priority.HIGH,
                accuracy=accuracy,
            ))

        untouched_favorites = [
            fav for fav in record.preferences.favorite_specialties
            if fav and fav.strip() and fav not in specialties and fav not in seen
        ]
        for name in untouched_favorites[:MAX_FAVORITES]:
            add(SuggestedTopic(
                specialty=name,
                reason="Keep exploring your favourite specialties",
                priority=Priority.MEDIUM,
                accuracy=0.0,
            ))

        if len(suggestions) < MIN_SUGGESTIONS:
            for name in self.common_specialties:
                if len(suggestions) >= MIN_SUGGESTIONS:
                    break
                if name in specialties or name in seen:
                    continue
                add(SuggestedTopic(
                    specialty=name,
                    reason="Broaden your knowledge in an essential specialty",
                    priority=Priority.MEDIUM,
                    accuracy=0.0,
                ))

        logger.debug(
            "rule_based_suggestions",
            count=len(suggestions),
            specialties=[s.specialty for s in suggestions],
        )
        return suggestions
