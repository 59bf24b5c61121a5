"""Quiz answer randomization."""

from __future__ import annotations

import random
from collections.abc import Sequence

from invoice_notifier.schemas.messages import MAX_QUIZ_LENGTH, MIN_QUIZ_LENGTH, Quiz

_rng = random.Random()


def randomize_quiz(
    question: str,
    answers: Sequence[str],
    *,
    rng: random.Random | None = None,
) -> Quiz:
    """Move the correct answer (index 0) to a random slot.

    Only index 0 and the chosen slot trade places; every other answer keeps
    its position.
    """
    if not MIN_QUIZ_LENGTH <= len(answers) <= MAX_QUIZ_LENGTH:
        raise ValueError(f"Quiz needs {MIN_QUIZ_LENGTH}-{MAX_QUIZ_LENGTH} answers, got {len(answers)}")

    correct_index = (rng or _rng).randrange(len(answers))

    shuffled = list(answers)
    shuffled[0], shuffled[correct_index] = shuffled[correct_index], shuffled[0]

    return Quiz(question=question, answers=tuple(shuffled), correct_index=correct_index)
