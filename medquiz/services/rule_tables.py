"""
Rule Tables

Static validation data for PASS/LAS medical quizzes:
- Level rules (required and too-advanced vocabulary, difficulty caps, lengths)
- Inappropriate content patterns (category -> pattern, severity, suggestion)
- Reference medical vocabulary per domain
- Quality thresholds, category weights and similarity thresholds

Everything here is immutable. Validators receive a RuleTables instance so
tests can inject variants; DEFAULT_RULE_TABLES is the production table.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from medquiz.services.validation_types import IssueSeverity, RecommendationPriority


@dataclass(frozen=True)
class LevelRule:
    """Vocabulary and length expectations for one study level"""
    name: str
    required_terms: Tuple[str, ...]
    forbidden_terms: Tuple[str, ...]
    max_difficulty: str
    question_length: Tuple[int, int]      # (min, max) characters
    explanation_length: Tuple[int, int]


@dataclass(frozen=True)
class ContentPattern:
    """One inappropriate-content regex"""
    pattern: str
    severity: IssueSeverity
    suggestion: str


@dataclass(frozen=True)
class QualityThresholds:
    min_overall_score: float = 70.0
    min_terminology_ratio: float = 0.30
    max_critical_issues: int = 0
    max_major_issues: int = 2
    min_medical_vocabulary_coverage: float = 0.70   # share of questions with medical terms
    category_minimums: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({
        "structure": 90.0,
        "content": 80.0,
        "medical": 75.0,
        "pedagogical": 70.0,
    }))


@dataclass(frozen=True)
class SimilarityThresholds:
    near_duplicate_ratio: float = 0.20      # edit distance / max length
    distractor_overlap: float = 0.60        # token overlap with the correct option
    min_coherence: float = 0.20             # question vs explanation token overlap


# =============================================================================
# LEVEL RULES
# =============================================================================

PASS_RULE = LevelRule(
    name="PASS",
    required_terms=(
        "anatomie", "physiologie", "biochimie", "cellule", "tissu", "organe",
        "système", "fonction", "mécanisme", "processus", "structure",
    ),
    forbidden_terms=(
        "diagnostic clinique", "traitement spécialisé", "pathologie complexe",
        "thérapeutique avancée", "chirurgie", "prescription",
    ),
    max_difficulty="medium",
    question_length=(20, 300),
    explanation_length=(50, 400),
)

LAS_RULE = LevelRule(
    name="LAS",
    required_terms=(
        "anatomie", "physiologie", "pathologie", "symptôme", "maladie",
        "syndrome", "diagnostic", "prévention", "santé publique",
    ),
    forbidden_terms=(
        "chirurgie spécialisée", "thérapeutique expérimentale",
        "diagnostic différentiel complexe", "prescription médicamenteuse",
    ),
    max_difficulty="hard",
    question_length=(30, 400),
    explanation_length=(80, 600),
)


# =============================================================================
# INAPPROPRIATE CONTENT
# =============================================================================

CRITICAL = IssueSeverity.CRITICAL
MAJOR = IssueSeverity.MAJOR
MINOR = IssueSeverity.MINOR

INAPPROPRIATE_PATTERNS: Dict[str, Tuple[ContentPattern, ...]] = {
    "medicalAdvice": tuple(
        ContentPattern(p, CRITICAL, "Remove personal medical advice; always refer to a physician")
        for p in (
            r"auto.?médication", r"diagnostic.?personnel", r"traitement.?sans.?médecin",
            r"remède.?miracle", r"guérison.?garantie", r"arrêter.?traitement",
            r"remplacer.?médecin",
        )
    ),
    "discriminatory": tuple(
        ContentPattern(p, CRITICAL, "Remove discriminatory statements")
        for p in (
            r"race.?supérieure", r"infériorité.?génétique", r"stéréotype.?racial",
            r"discrimination.?sexuelle",
        )
    ),
    "pseudoscience": tuple(
        ContentPattern(p, MAJOR, "Stick to evidence-based medicine")
        for p in (
            r"médecine.?alternative.?exclusive", r"théorie.?complot", r"anti.?vaccin",
            r"homéopathie.?seule", r"chakra.?médical",
        )
    ),
    "alarmist": tuple(
        ContentPattern(p, MAJOR, "Use a neutral, factual tone")
        for p in (
            r"panique", r"catastrophe.?sanitaire", r"danger.?mortel.?immédiat",
            r"urgence.?absolue",
        )
    ),
    "inappropriate": tuple(
        ContentPattern(p, MINOR, "Rephrase with appropriate academic language")
        for p in (
            r"violence.?graphique", r"contenu.?explicite", r"langage.?vulgaire",
            r"discrimination",
        )
    ),
}


# =============================================================================
# MEDICAL VOCABULARY
# =============================================================================

MEDICAL_VOCABULARY: Dict[str, Tuple[str, ...]] = {
    "anatomy": (
        "anatomie", "squelette", "muscle", "os", "articulation", "ligament",
        "tendon", "cartilage", "moelle", "périoste", "synovie",
    ),
    "physiology": (
        "physiologie", "fonction", "métabolisme", "homéostasie", "régulation",
        "adaptation", "équilibre", "transport", "échange", "circulation",
    ),
    "biochemistry": (
        "biochimie", "enzyme", "protéine", "glucide", "lipide", "acide aminé",
        "atp", "métabolisme", "catalyse", "réaction", "synthèse",
    ),
    "pathology": (
        "pathologie", "maladie", "syndrome", "symptôme", "signe", "lésion",
        "inflammation", "infection", "tumeur", "dégénérescence", "nécrose",
    ),
    "pharmacology": (
        "pharmacologie", "médicament", "principe actif", "posologie", "effet",
        "interaction", "métabolisme", "élimination", "biodisponibilité",
    ),
}

# Vague wording that weakens a question stem
VAGUE_TERMS = (
    "quelque chose", "certains", "parfois", "souvent", "généralement",
    "probablement", "peut-être", "assez", "plutôt", "relativement",
)

# Absolute wording that gives away distractors
ABSOLUTE_TERMS = (
    "toujours", "jamais", "aucune des réponses", "toutes les réponses",
)


@dataclass(frozen=True)
class RuleTables:
    """All static validation data, grouped for injection."""
    levels: Mapping[str, LevelRule] = field(
        default_factory=lambda: MappingProxyType({"PASS": PASS_RULE, "LAS": LAS_RULE})
    )
    inappropriate_patterns: Mapping[str, Tuple[ContentPattern, ...]] = field(
        default_factory=lambda: MappingProxyType(dict(INAPPROPRIATE_PATTERNS))
    )
    medical_vocabulary: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType(dict(MEDICAL_VOCABULARY))
    )
    vague_terms: Tuple[str, ...] = VAGUE_TERMS
    absolute_terms: Tuple[str, ...] = ABSOLUTE_TERMS
    thresholds: QualityThresholds = field(default_factory=QualityThresholds)
    similarity: SimilarityThresholds = field(default_factory=SimilarityThresholds)

    # QuizQualityValidator weighting
    category_weights: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({
        "structure": 0.30,
        "content": 0.25,
        "medical": 0.25,
        "pedagogical": 0.20,
    }))
    # ValidationOrchestrator weighting
    orchestrator_weights: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({
        "structure": 0.20,
        "content": 0.30,
        "quality": 0.50,
    }))
    # Order in which below-minimum categories are reported
    category_priorities: Mapping[str, RecommendationPriority] = field(
        default_factory=lambda: MappingProxyType({
            "structure": RecommendationPriority.HIGH,
            "medical": RecommendationPriority.HIGH,
            "content": RecommendationPriority.MEDIUM,
            "pedagogical": RecommendationPriority.MEDIUM,
        })
    )

    # Fixed penalties applied once when any inappropriate content is found
    inappropriate_medical_penalty: float = 50.0
    inappropriate_content_penalty: float = 30.0

    def level_rule(self, level: Optional[str]) -> Optional[LevelRule]:
        if not level:
            return None
        return self.levels.get(str(getattr(level, "value", level)).upper())

    def reference_terms(self) -> Tuple[str, ...]:
        """Unique reference medical terms across every domain, in first-seen order."""
        seen: Dict[str, None] = {}
        for terms in self.medical_vocabulary.values():
            for term in terms:
                seen.setdefault(term, None)
        return tuple(seen)


DEFAULT_RULE_TABLES = RuleTables()
