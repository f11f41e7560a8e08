"""
Default prompt builder for single-question generation.

Prompts are written in French since the generated content is French.
"""

from typing import List, Optional

from medquiz.schemas.quiz import QuestionGenerationRequest, StudentLevel

SOURCE_CONTENT_LIMIT = 2000

LEVEL_LABELS = {
    StudentLevel.PASS: "PASS (1ère année)",
    StudentLevel.LAS: "LAS (2ème année)",
}

RESPONSE_FORMAT = """FORMAT DE RÉPONSE JSON:
{
  "questionText": "Texte complet de la question médicale",
  "options": [
    {"text": "Réponse A", "isCorrect": true},
    {"text": "Réponse B", "isCorrect": false},
    {"text": "Réponse C", "isCorrect": false},
    {"text": "Réponse D", "isCorrect": false}
  ],
  "explanation": "Explication détaillée de la bonne réponse et pourquoi les autres sont incorrectes",
  "difficulty": "easy|medium|hard"
}"""


def build_question_prompt(request: QuestionGenerationRequest, question_number: int,
                          feedback: Optional[List[str]] = None) -> str:
    """
    Build the prompt for one question.

    Args:
        request: What to generate
        question_number: 1-based position in the batch
        feedback: Issues found on the previous attempt, if retrying

    Returns:
        Prompt text asking for a single JSON question
    """
    level = LEVEL_LABELS.get(request.level, request.level.value)
    domain = request.domain or "médecine générale"

    sections = [
        "Tu es un expert en pédagogie médicale et en création de questions d'examen. "
        "Génère une question de QCM médicale de haute qualité.",
        "",
        "CONTEXTE:",
        f"- Niveau d'études: {level}",
        f"- Domaine médical: {domain}",
    ]
    if request.category_name:
        sections.append(f"- Catégorie: {request.category_name}")
    if request.course_name:
        sections.append(f"- Cours associé: {request.course_name}")

    if request.source_content:
        sections.extend([
            "",
            "CONTENU SOURCE À UTILISER:",
            request.source_content[:SOURCE_CONTENT_LIMIT],
        ])

    sections.extend([
        "",
        "RÈGLES DE CRÉATION:",
        "- Question claire, précise et pédagogique",
        "- Exactement 4 options de réponse, toutes différentes",
        "- Une seule bonne réponse",
        f"- Niveau adapté à {level}",
        "- Vocabulaire médical approprié mais accessible",
        "- Distracteurs plausibles, distincts de la bonne réponse",
        "",
        RESPONSE_FORMAT,
    ])

    if feedback:
        sections.extend(["", "LA TENTATIVE PRÉCÉDENTE A ÉTÉ REJETÉE. CORRIGE CES PROBLÈMES:"])
        sections.extend(f"- {item}" for item in feedback)

    sections.extend([
        "",
        "IMPORTANT:",
        "- Réponds UNIQUEMENT avec du JSON valide",
        "- L'explication doit être pédagogique et complète",
        "",
        f"QUESTION {question_number}:",
    ])
    return "\n".join(sections)
