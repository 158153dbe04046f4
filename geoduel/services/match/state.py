"""In-memory state for matches being played.

A ``MatchState`` exists only while its match is active and is removed the
moment the match finishes or is abandoned. All mutation of a given state
happens while holding the store's lock for that match id.
"""

import enum
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional


class MatchPhase(str, enum.Enum):
    AWAITING_MATCH = 'awaiting_match'
    AWAITING_OPPONENT = 'awaiting_opponent'
    QUESTION_ACTIVE = 'question_active'
    RESULTS_PENDING = 'results_pending'
    FINALIZED = 'finalized'
    ABANDONED = 'abandoned'


TERMINAL_PHASES = (MatchPhase.FINALIZED, MatchPhase.ABANDONED)


@dataclass(frozen=True)
class Question:
    prompt: str
    correct_answer: str
    options: List[str]

    def sanitize(self) -> dict:
        """Client view of the question, without the correct answer."""
        return {'prompt': self.prompt, 'options': list(self.options)}

    def to_dict(self) -> dict:
        return {'prompt': self.prompt, 'correctAnswer': self.correct_answer, 'options': list(self.options)}


@dataclass
class PlayerSlot:
    channel: object
    score: int = 0
    has_answered_current: bool = False


@dataclass(frozen=True)
class AnswerRecord:
    submitted_answer: object
    is_correct: bool
    elapsed_ms: int
    points_awarded: int


@dataclass
class MatchState:
    match_id: int
    questions: List[Question]
    participants: Dict[int, PlayerSlot] = field(default_factory=dict)
    current_index: int = 0
    answers_by_question: Dict[int, Dict[int, AnswerRecord]] = field(default_factory=dict)
    phase: MatchPhase = MatchPhase.AWAITING_OPPONENT
    started: bool = False
    pending_task: Optional[object] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    def answers_for(self, question_index: int) -> Dict[int, AnswerRecord]:
        return self.answers_by_question.setdefault(question_index, {})

    def has_answered(self, identity, question_index: int) -> bool:
        return identity in self.answers_by_question.get(question_index, {})

    def all_answered(self, question_index: int) -> bool:
        answered = self.answers_by_question.get(question_index, {})
        return bool(self.participants) and all(pid in answered for pid in self.participants)

    def scores(self) -> Dict[str, int]:
        return {str(pid): slot.score for pid, slot in self.participants.items()}

    def cancel_pending(self) -> None:
        task = self.pending_task
        self.pending_task = None
        if task is not None:
            task.cancel()


class MatchStateStore:
    """Table of active matches keyed by match id."""

    def __init__(self):
        self._states: Dict[int, MatchState] = {}
        # match id -> [RLock, number of callers holding or waiting on it]
        self._locks: Dict[int, list] = {}
        self._guard = threading.Lock()

    @contextmanager
    def lock(self, match_id):
        """Hold the per-match lock serialising every read-modify-write of its state.

        An entry lives only while someone holds or waits on it, or while the
        match has state.
        """
        with self._guard:
            entry = self._locks.get(match_id)
            if entry is None:
                entry = self._locks[match_id] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0 and match_id not in self._states and self._locks.get(match_id) is entry:
                    del self._locks[match_id]

    def get_or_create(self, match_id, factory: Callable[[], MatchState]) -> MatchState:
        # The factory runs under the match lock, so a racing caller waits and
        # then observes the state built by the first one.
        with self.lock(match_id):
            state = self._states.get(match_id)
            if state is None:
                state = factory()
                self._states[match_id] = state
            return state

    def get(self, match_id) -> Optional[MatchState]:
        return self._states.get(match_id)

    def remove(self, match_id) -> Optional[MatchState]:
        with self._guard:
            state = self._states.pop(match_id, None)
            entry = self._locks.get(match_id)
            if entry is not None and entry[1] == 0:
                del self._locks[match_id]
            return state

    def match_ids_for(self, identity) -> List[int]:
        return [mid for mid, st in list(self._states.items()) if identity in st.participants]

    def __contains__(self, match_id):
        return match_id in self._states

    def __len__(self):
        return len(self._states)
