import os


def _origins(raw):
    if raw.strip() == '*':
        return '*'
    return [o.strip() for o in raw.split(',') if o.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    PORT = int(os.environ.get('PORT', '4000'))
    DEBUG = os.environ.get('DEBUG', '0') in ('1', 'true', 'True')
    CORS_ORIGINS = _origins(os.environ.get('CORS_ORIGINS', '*'))
    # Round defaults (seconds); a host-submitted config overrides these
    CLUE_DURATION_SEC = int(os.environ.get('CLUE_DURATION_SEC', '15'))
    CLUE_COUNT = int(os.environ.get('CLUE_COUNT', '8'))
    # Fewest clue kinds a host may enable
    MIN_ENABLED_CLUES = int(os.environ.get('MIN_ENABLED_CLUES', '1'))
    # Longest single clue a host may configure
    MAX_CLUE_DURATION_SEC = int(os.environ.get('MAX_CLUE_DURATION_SEC', '600'))
    # Empty sessions older than this are swept
    SESSION_RETENTION_SEC = int(os.environ.get('SESSION_RETENTION_SEC', '1800'))
    SWEEP_INTERVAL_SEC = int(os.environ.get('SWEEP_INTERVAL_SEC', '300'))
    # Socket.IO heartbeat, kept short so dropped players are noticed quickly
    PING_INTERVAL_SEC = int(os.environ.get('PING_INTERVAL_SEC', '10'))
    PING_TIMEOUT_SEC = int(os.environ.get('PING_TIMEOUT_SEC', '10'))
    # Optional: path to an alternate catalog JSON file
    CATALOG_PATH = os.environ.get('CATALOG_PATH')
