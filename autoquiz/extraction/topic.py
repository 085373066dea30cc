"""Free-text topic source: expands short topics into a usable prompt body."""

import structlog

from autoquiz.models import ExtractionMethod, ExtractionResult, TopicSource

from .base import Extractor, success_result

logger = structlog.get_logger(__name__)

TOPIC_CONFIDENCE = 0.7
TOPIC_QUALITY = 7

# Only topics shorter than this are considered for expansion
EXPANSION_MAX_CHARS = 20
GENERIC_EXPANSION_MAX_CHARS = 15

KNOWN_TOPICS = {
    "world war 1": (
        "World War 1 (1914-1918), also known as the Great War, was a global war that involved most of "
        "the world's major powers. Key topics include causes, major battles, key figures, technology, "
        "and consequences."
    ),
    "world war 2": (
        "World War 2 (1939-1945) was the deadliest conflict in human history, fought between the Axis "
        "and Allied powers. Important topics include causes, major campaigns, the Holocaust, key leaders "
        "such as Hitler and Churchill, D-Day, Pearl Harbor, and the atomic bombs."
    ),
    "civil war": (
        "The American Civil War (1861-1865) was fought between the Union and Confederate states over "
        "slavery and states' rights. Key topics include causes, major battles, Abraham Lincoln, slavery, "
        "and Reconstruction."
    ),
    "american revolution": (
        "The American Revolution (1775-1783) was the war for independence from British rule. Important "
        "topics include causes, key battles, the founding fathers, the Declaration of Independence, and "
        "the Constitution."
    ),
    "photosynthesis": (
        "Photosynthesis is the process by which plants convert sunlight, carbon dioxide, and water into "
        "glucose and oxygen. Key concepts include chloroplasts, chlorophyll, light and dark reactions, "
        "and the chemical equation."
    ),
    "dna": (
        "DNA (Deoxyribonucleic Acid) is the genetic material that carries hereditary information. Topics "
        "include structure, replication, transcription, translation, mutations, and genetic inheritance."
    ),
    "solar system": (
        "The Solar System consists of the Sun and the celestial bodies orbiting it, including planets, "
        "moons, asteroids, and comets. Key topics include planet characteristics, orbits, and space "
        "exploration."
    ),
    "cell biology": (
        "Cell biology studies the structure and function of cells, the basic units of life. Topics "
        "include cell organelles, cell division, membrane structure, and differences between prokaryotic "
        "and eukaryotic cells."
    ),
}

_INSTRUCTION_MARKERS = ("?", "create", "generate", "make a quiz")


def expand_topic(topic: str) -> tuple[str, bool]:
    """Expand a short topic into descriptive text.

    Text that already reads like a question or an instruction is kept.

    Args:
        topic: Topic as typed by the user.

    Returns:
        Tuple of (text, expanded).
    """
    clean = " ".join(topic.split())
    lowered = clean.lower()

    if len(clean) >= EXPANSION_MAX_CHARS or any(m in lowered for m in _INSTRUCTION_MARKERS):
        return clean, False

    if lowered in KNOWN_TOPICS:
        return KNOWN_TOPICS[lowered], True

    if len(clean) < GENERIC_EXPANSION_MAX_CHARS:
        return (
            f"{clean}: This topic covers key concepts, important facts, historical context, major figures, "
            f"and significant events related to {clean}. Questions will test understanding of fundamental "
            f"principles and important details."
        ), True

    return clean, False


class TopicExtractor(Extractor):
    """Turn a topic string into extraction output with a fixed quality."""

    default_method = ExtractionMethod.TOPIC

    async def _extract(self, source: TopicSource) -> ExtractionResult:
        text, expanded = expand_topic(source.text)
        if expanded:
            logger.info("topic_expanded", topic=source.text, chars=len(text))
        return success_result(
            source,
            text,
            TOPIC_CONFIDENCE,
            ExtractionMethod.TOPIC,
            quality_score=TOPIC_QUALITY,
            details={"expanded": expanded, "original_topic": source.text.strip()},
        )
