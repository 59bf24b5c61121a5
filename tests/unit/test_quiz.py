"""Unit tests for quiz answer randomization."""

import random
from collections import Counter

import pytest

from invoice_notifier.notify.quiz import randomize_quiz


@pytest.mark.parametrize("size", range(2, 11))
def test_correct_answer_lands_on_correct_index(size):
    answers = [f"answer-{i}" for i in range(size)]
    rng = random.Random(size)

    for _ in range(25):
        quiz = randomize_quiz("Who routed this?", answers, rng=rng)

        assert Counter(quiz.answers) == Counter(answers)
        assert 0 <= quiz.correct_index < size
        assert quiz.answers[quiz.correct_index] == "answer-0"


@pytest.mark.parametrize("size", [2, 5, 10])
def test_only_two_positions_change(size):
    answers = [f"answer-{i}" for i in range(size)]

    for seed in range(20):
        quiz = randomize_quiz("q", answers, rng=random.Random(seed))
        moved = [i for i, answer in enumerate(quiz.answers) if answer != answers[i]]

        if quiz.correct_index == 0:
            assert moved == []
        else:
            assert moved == [0, quiz.correct_index]
            assert quiz.answers[0] == answers[quiz.correct_index]


def test_every_slot_is_reachable():
    rng = random.Random(1)
    seen = {randomize_quiz("q", ["a", "b", "c", "d"], rng=rng).correct_index for _ in range(200)}

    assert seen == {0, 1, 2, 3}


def test_input_is_not_mutated():
    answers = ["a", "b", "c"]

    randomize_quiz("q", answers, rng=random.Random(3))

    assert answers == ["a", "b", "c"]


@pytest.mark.parametrize("size", [0, 1, 11])
def test_rejects_out_of_range_lengths(size):
    with pytest.raises(ValueError):
        randomize_quiz("q", [str(i) for i in range(size)])
