"""Errors surfaced by the match server.

Every ``MatchError`` carries a stable ``code`` that clients can switch on and
a human readable ``message``. Only admission errors close the channel; all
others are reported to the sender and the channel stays open.
"""


class MatchError(Exception):
    code = 'match_error'
    message = 'Match error'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_payload(self):
        return {'type': 'error', 'code': self.code, 'message': self.message}


class NotAuthenticated(MatchError):
    code = 'not_authenticated'
    message = 'Authentication required'

    def __init__(self, message=None, close_code=4001):
        super().__init__(message)
        self.close_code = close_code


class MatchNotFoundOrInactive(MatchError):
    code = 'match_not_found_or_inactive'
    message = 'Match not found or not active'


class NotAParticipant(MatchError):
    code = 'not_a_participant'
    message = 'Not in match'


class InvalidTiming(MatchError):
    code = 'invalid_timing'
    message = 'Invalid answer timing'


class RateLimited(MatchError):
    code = 'rate_limited'
    message = 'Rate limit exceeded. Please slow down.'


class UnknownMessageType(MatchError):
    code = 'unknown_message_type'
    message = 'Unknown message type'


class QuestionNotActive(MatchError):
    code = 'question_not_active'
    message = 'That question is not being played'


class PersistenceError(Exception):
    """A durable write or read against the match store failed."""
