import random
from typing import List

from geoduel.models import Country
from .state import Question


WRONG_OPTIONS = 3
GAME_KINDS = ('flags', 'capitals')


def _prompt_and_answer(country: Country, game_kind: str):
    if game_kind == 'capitals':
        return f"What is the capital of {country.name}?", country.capital
    return country.flag_url, country.name


def _candidates(game_kind: str) -> List[Country]:
    query = Country.query
    if game_kind == 'capitals':
        query = query.filter(Country.capital.isnot(None))
    else:
        query = query.filter(Country.flag_url.isnot(None))
    return query.all()


def generate_match_questions(game_kind: str, count: int = 10, rng=None) -> List[Question]:
    """Build the shared question sequence for one match.

    Picks ``count`` random countries; each question offers the right answer
    plus three other countries' answers, shuffled. Unknown game kinds play
    as ``flags``.
    """
    rng = rng or random
    if game_kind not in GAME_KINDS:
        game_kind = 'flags'

    pool = _candidates(game_kind)
    picked = rng.sample(pool, min(count, len(pool)))

    questions = []
    for country in picked:
        prompt, answer = _prompt_and_answer(country, game_kind)
        distractors = list({_prompt_and_answer(c, game_kind)[1] for c in pool if c.id != country.id} - {answer})
        distractors.sort()
        wrong = rng.sample(distractors, min(WRONG_OPTIONS, len(distractors)))
        options = wrong + [answer]
        rng.shuffle(options)
        questions.append(Question(prompt=prompt, correct_answer=answer, options=options))
    return questions
