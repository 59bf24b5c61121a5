"""Notification message schemas."""

from pydantic import BaseModel, ConfigDict, Field

MIN_QUIZ_LENGTH = 2
MAX_QUIZ_LENGTH = 10


class MessageDescriptor(BaseModel):
    """What a category composer produced for a settled invoice.

    When a quiz is attached the correct answer is at ``correct_index``, which
    composers must leave at 0; the randomizer moves it before dispatch.
    """

    model_config = ConfigDict(frozen=True)

    icon: str
    message: str
    title: str | None = None
    quiz: tuple[str, ...] | None = None
    correct_index: int = 0

    @property
    def has_sendable_quiz(self) -> bool:
        if not self.title or not self.quiz:
            return False
        return MIN_QUIZ_LENGTH <= len(self.quiz) <= MAX_QUIZ_LENGTH


class Quiz(BaseModel):
    """A randomized quiz ready to send."""

    model_config = ConfigDict(frozen=True)

    question: str
    answers: tuple[str, ...] = Field(min_length=MIN_QUIZ_LENGTH, max_length=MAX_QUIZ_LENGTH)
    correct_index: int
