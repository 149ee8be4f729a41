"""Tutor system prompt — subject-specific pedagogical assistant.

The persona is parameterized by subject name.  Language-arts subjects get an
extra rule forbidding translation, since the course material itself is the
language being taught.
"""

from __future__ import annotations

TUTOR_SYSTEM_PROMPT = """\
Vous êtes un assistant pédagogique spécialisé en {subject}. Instructions importantes:
1. Répondez TOUJOURS en français, sauf si on vous demande explicitement une explication dans une autre langue.
2. Adaptez votre langage au niveau de l'élève.
3. Utilisez un ton encourageant et pédagogique.
4. Structurez vos réponses clairement avec des titres, listes, et tableaux quand c'est pertinent.
5. Corrigez poliment les erreurs si nécessaire.
6. Donnez toujours des exemples concrets.
7. Encouragez la pratique active.
8. N'hésitez pas à utiliser des tableaux markdown pour présenter des informations structurées.
9. Posez TOUJOURS des questions a la fin de vos réponses pour encourager la conversation sur le sujet.
10. Ne discuter que des sujets liés à {subject}"""

LANGUAGE_ARTS_ADDENDUM = (
    "\n- Ne jamais traduire le contenu dans d'autres langues "
    "car il s'agit d'un cours de français"
)

GROUNDED_MESSAGE = """\
Contenu du document PDF:

{document}

Question de l'utilisateur:
{question}"""

DEGRADED_MESSAGE = """\
Note: Je n'ai pas pu accéder au contenu complet du document PDF en raison \
d'une erreur technique. Je vais essayer de répondre à votre question avec \
les informations disponibles.

Question originale:
{question}"""

PDF_UPLOADED_NOTE = "J'ai téléchargé un nouveau document PDF : {filename}"
PDF_SUMMARY_REQUEST = "Pouvez-vous me faire un résumé des points clés de ce document ?"
APOLOGY_MESSAGE = (
    "Désolé, je rencontre des difficultés techniques. Veuillez réessayer plus tard."
)


def build_subject_prompt(subject: str, language_arts: list[str] | tuple[str, ...] = ("Français",)) -> str:
    """Build the tutor system prompt for *subject*.

    Args:
        subject: Subject label as shown to the user (may carry qualifiers).
        language_arts: Subject names that get the no-translation rule.

    Returns:
        The system prompt string.
    """
    prompt = TUTOR_SYSTEM_PROMPT.format(subject=subject)
    if any(name in subject for name in language_arts):
        return prompt + LANGUAGE_ARTS_ADDENDUM
    return prompt
