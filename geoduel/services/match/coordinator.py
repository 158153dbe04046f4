"""Head-to-head match coordinator.

Drives each match through its phases::

    AWAITING_MATCH -> AWAITING_OPPONENT -> QUESTION_ACTIVE -> RESULTS_PENDING
        -> QUESTION_ACTIVE (next question) | FINALIZED

with ABANDONED reached from any live phase when a player leaves or drops.
Every read-modify-write of a match's state happens under that match's lock
from the state store, so socket events for the same match are handled one at
a time even when the server dispatches them on several threads.
"""

import logging
import math
import time
from typing import Callable, Dict, List, Optional

from .errors import (
    InvalidTiming,
    MatchNotFoundOrInactive,
    NotAParticipant,
    PersistenceError,
    QuestionNotActive,
    RateLimited,
)
from .scoring import decide_winner, is_correct_answer, score_answer
from .state import AnswerRecord, MatchPhase, MatchState, PlayerSlot


def _send(channel, message: dict) -> None:
    if channel is not None and channel.is_open:
        channel.send(message)


class MatchCoordinator:
    def __init__(
        self,
        gateway,
        store,
        registry,
        rate_limiter,
        scheduler,
        question_factory: Callable[[str, int], List],
        questions_per_match: int = 10,
        results_pause_sec: float = 3.0,
        min_answer_time_ms: int = 100,
        finalize_attempts: int = 3,
        finalize_retry_delay_sec: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.gateway = gateway
        self.store = store
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.scheduler = scheduler
        self.question_factory = question_factory
        self.questions_per_match = questions_per_match
        self.results_pause_sec = results_pause_sec
        self.min_answer_time_ms = min_answer_time_ms
        self.finalize_attempts = max(1, finalize_attempts)
        self.finalize_retry_delay_sec = finalize_retry_delay_sec
        self._sleep = sleep
        self.log = logger or logging.getLogger(__name__)

    # ---- queries ----

    def phase_of(self, match_id) -> MatchPhase:
        state = self.store.get(match_id)
        return state.phase if state else MatchPhase.AWAITING_MATCH

    # ---- broadcast helpers ----

    def _broadcast(self, state: MatchState, message: dict) -> None:
        for slot in list(state.participants.values()):
            _send(slot.channel, message)

    def _broadcast_except(self, state: MatchState, excluded, message: dict) -> None:
        for pid, slot in list(state.participants.items()):
            if pid != excluded:
                _send(slot.channel, message)

    # ---- join ----

    def join(self, identity, match_id, channel) -> MatchState:
        """Seat ``identity`` in an active match it participates in.

        The first join builds the question sequence; the second starts the
        match. A repeat join by a seated player swaps in the new channel and
        keeps the score.
        """
        with self.store.lock(match_id):
            existing = self.store.get(match_id)
            record = self.gateway.find_active_match(match_id, identity)
            # A match torn down during the lookup must not be rebuilt
            if record is None or (existing is not None and self.store.get(match_id) is not existing):
                raise MatchNotFoundOrInactive()

            def _build():
                questions = list(self.question_factory(record.game_type, self.questions_per_match))
                self.log.info(f"[match-create] match={match_id} kind={record.game_type} questions={len(questions)}")
                return MatchState(match_id=match_id, questions=questions)

            state = self.store.get_or_create(match_id, _build)
            slot = state.participants.get(identity)
            rejoined = slot is not None
            if rejoined:
                slot.channel = channel
            else:
                state.participants[identity] = PlayerSlot(channel=channel)
            self.log.info(
                f"[match-join] match={match_id} user={identity} players={len(state.participants)} rejoin={rejoined}"
            )

            _send(channel, {
                'type': 'match_joined',
                'matchId': match_id,
                'totalQuestions': state.total_questions,
            })

            if state.started:
                question = state.current_question
                if rejoined and question is not None and state.phase == MatchPhase.QUESTION_ACTIVE:
                    _send(channel, {
                        'type': 'match_start',
                        'question': question.sanitize(),
                        'questionIndex': state.current_index,
                        'totalQuestions': state.total_questions,
                    })
                return state

            if len(state.participants) < 2:
                _send(channel, {'type': 'waiting_for_opponent'})
                return state

            self._start(state)
            return state

    def _start(self, state: MatchState) -> None:
        state.started = True
        try:
            self.gateway.mark_started(state.match_id)
        except PersistenceError:
            self.log.exception(f"[match-start-persist-failed] match={state.match_id}")

        if not state.questions:
            self.log.warning(f"[match-start] match={state.match_id} has no questions, finalizing")
            self._finalize(state)
            return

        state.phase = MatchPhase.QUESTION_ACTIVE
        self._broadcast(state, {
            'type': 'match_start',
            'question': state.questions[0].sanitize(),
            'questionIndex': 0,
            'totalQuestions': state.total_questions,
        })

    # ---- answers ----

    def _coerce_elapsed(self, elapsed_ms) -> int:
        if isinstance(elapsed_ms, bool) or not isinstance(elapsed_ms, (int, float)):
            raise InvalidTiming()
        if not math.isfinite(elapsed_ms) or elapsed_ms < self.min_answer_time_ms:
            raise InvalidTiming()
        return elapsed_ms

    def submit_answer(self, identity, match_id, question_index, answer, elapsed_ms) -> Optional[AnswerRecord]:
        """Record one timed answer.

        Returns the stored record, or None when the player already answered
        that question (duplicates are ignored without an error).
        """
        decision = self.rate_limiter.check_and_consume(identity, match_id)
        if not decision.allowed:
            raise RateLimited(decision.message)

        with self.store.lock(match_id):
            state = self.store.get(match_id)
            if state is None:
                raise MatchNotFoundOrInactive('Match not found')
            slot = state.participants.get(identity)
            if slot is None:
                raise NotAParticipant()

            elapsed_ms = self._coerce_elapsed(elapsed_ms)

            if isinstance(question_index, bool) or not isinstance(question_index, int):
                raise QuestionNotActive()
            if state.has_answered(identity, question_index):
                self.log.debug(f"[answer-duplicate] match={match_id} user={identity} q={question_index}")
                return None
            if state.phase != MatchPhase.QUESTION_ACTIVE or question_index != state.current_index:
                raise QuestionNotActive()

            question = state.questions[question_index]
            correct = is_correct_answer(answer, question.correct_answer)
            points = score_answer(correct, elapsed_ms)
            record = AnswerRecord(
                submitted_answer=answer,
                is_correct=correct,
                elapsed_ms=elapsed_ms,
                points_awarded=points,
            )
            state.answers_for(question_index)[identity] = record
            slot.score += points
            slot.has_answered_current = True

            try:
                self.gateway.record_answer(
                    match_id, identity, question_index, question, answer, correct, elapsed_ms, points
                )
            except PersistenceError:
                # The in-memory match keeps going; the answer log is best-effort
                self.log.exception(f"[answer-persist-failed] match={match_id} user={identity} q={question_index}")

            self._broadcast_except(state, identity, {
                'type': 'opponent_answered',
                'questionIndex': question_index,
            })

            if len(state.participants) == 2 and state.all_answered(question_index):
                self._publish_results(state, question_index)
            return record

    def _publish_results(self, state: MatchState, question_index: int) -> None:
        question = state.questions[question_index]
        answers = state.answers_by_question[question_index]
        results = {
            str(pid): {
                'answer': rec.submitted_answer,
                'isCorrect': rec.is_correct,
                'score': rec.points_awarded,
                'timeMs': rec.elapsed_ms,
            }
            for pid, rec in answers.items()
        }
        state.phase = MatchPhase.RESULTS_PENDING
        self._broadcast(state, {
            'type': 'question_results',
            'questionIndex': question_index,
            'correctAnswer': question.correct_answer,
            'results': results,
            'scores': state.scores(),
        })
        for slot in state.participants.values():
            slot.has_answered_current = False

        task = self.scheduler.schedule(
            self.results_pause_sec,
            self._advance,
            state,
            question_index,
            name=f"match:{state.match_id}:q{question_index}",
        )
        if not task.fired:
            state.pending_task = task

    def _advance(self, state: MatchState, expected_index: int) -> None:
        if self.store.get(state.match_id) is not state:
            self.log.info(f"[timer-abort] match={state.match_id} state gone")
            return
        with self.store.lock(state.match_id):
            if (
                self.store.get(state.match_id) is not state
                or state.phase != MatchPhase.RESULTS_PENDING
                or state.current_index != expected_index
            ):
                self.log.info(
                    f"[timer-abort] match={state.match_id} expected_index={expected_index} "
                    f"actual_index={state.current_index} phase={state.phase.value}"
                )
                return
            state.pending_task = None
            state.current_index += 1

            if state.current_index >= state.total_questions:
                self._finalize(state)
                return

            state.phase = MatchPhase.QUESTION_ACTIVE
            self._broadcast(state, {
                'type': 'next_question',
                'question': state.questions[state.current_index].sanitize(),
                'questionIndex': state.current_index,
            })

    # ---- end of match ----

    def _persist_final(self, match_id, scores: Dict[int, int], winner_id) -> bool:
        for attempt in range(1, self.finalize_attempts + 1):
            try:
                self.gateway.complete(match_id, scores, winner_id)
                return True
            except PersistenceError:
                self.log.warning(
                    f"[match-finalize-retry] match={match_id} attempt={attempt}/{self.finalize_attempts}",
                    exc_info=True,
                )
                if attempt < self.finalize_attempts and self.finalize_retry_delay_sec:
                    self._sleep(self.finalize_retry_delay_sec)
        self.log.error(f"[match-finalize-failed] match={match_id} winner={winner_id} scores={scores}")
        return False

    def _finalize(self, state: MatchState) -> None:
        state.cancel_pending()
        state.phase = MatchPhase.FINALIZED
        scores = {pid: slot.score for pid, slot in state.participants.items()}
        winner_id = decide_winner(scores)
        self.log.info(f"[match-finalize] match={state.match_id} winner={winner_id} scores={scores}")
        self._persist_final(state.match_id, scores, winner_id)
        self._broadcast(state, {
            'type': 'match_end',
            'winnerId': winner_id,
            'scores': state.scores(),
            'isTie': winner_id is None,
        })
        self.store.remove(state.match_id)

    def leave(self, identity, match_id) -> bool:
        """Forfeit ``match_id`` on behalf of ``identity``.

        The remaining player is told and wins by forfeit if the durable match
        was still active. Returns False if the player was not seated.
        """
        with self.store.lock(match_id):
            state = self.store.get(match_id)
            if state is None or identity not in state.participants:
                return False
            del state.participants[identity]
            state.cancel_pending()
            state.phase = MatchPhase.ABANDONED
            self.log.info(f"[match-leave] match={match_id} user={identity} remaining={list(state.participants)}")
            try:
                self._broadcast(state, {'type': 'opponent_left', 'matchId': match_id})
                winner_id = self.gateway.forfeit(match_id, identity)
                if winner_id is not None:
                    self.log.info(f"[match-forfeit] match={match_id} winner={winner_id}")
            except PersistenceError:
                self.log.exception(f"[match-forfeit-persist-failed] match={match_id} leaver={identity}")
            finally:
                self.store.remove(match_id)
            return True

    def disconnect(self, identity, channel=None) -> List[int]:
        """Treat a dropped channel as leaving every match it is seated in.

        Only seats still bound to ``channel`` are forfeited, so an old socket
        closing after a reconnect does not end the match.
        """
        left = []
        for match_id in self.store.match_ids_for(identity):
            with self.store.lock(match_id):
                state = self.store.get(match_id)
                slot = state.participants.get(identity) if state else None
                if slot is None or (channel is not None and slot.channel is not channel):
                    continue
                if self.leave(identity, match_id):
                    left.append(match_id)
        return left
