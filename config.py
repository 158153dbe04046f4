import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///geoduel.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Channel admission credentials
    JWT_SECRET = os.environ.get('JWT_SECRET') or 'dev-jwt-secret-geo-elevate-2024'
    JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
    # Match pacing
    QUESTIONS_PER_MATCH = int(os.environ.get('QUESTIONS_PER_MATCH', '10'))
    QUESTION_RESULTS_PAUSE_SEC = float(os.environ.get('QUESTION_RESULTS_PAUSE_SEC', '3'))
    # Answers faster than this are not humanly possible
    MIN_ANSWER_TIME_MS = int(os.environ.get('MIN_ANSWER_TIME_MS', '100'))
    # Answer submission limiter, per (user, match)
    ANSWER_RATE_LIMIT_WINDOW_MS = int(os.environ.get('ANSWER_RATE_LIMIT_WINDOW_MS', '1000'))
    ANSWER_RATE_LIMIT_MAX = int(os.environ.get('ANSWER_RATE_LIMIT_MAX', '3'))
    RATE_LIMIT_SWEEP_SEC = int(os.environ.get('RATE_LIMIT_SWEEP_SEC', '60'))
    RATE_LIMIT_RETENTION_SEC = int(os.environ.get('RATE_LIMIT_RETENTION_SEC', '60'))
    # Final result writes decide the durable outcome, so they are retried
    FINALIZE_PERSIST_ATTEMPTS = int(os.environ.get('FINALIZE_PERSIST_ATTEMPTS', '3'))
    FINALIZE_RETRY_DELAY_SEC = float(os.environ.get('FINALIZE_RETRY_DELAY_SEC', '0.5'))
