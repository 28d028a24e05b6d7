import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Room codes are this many characters from A-Z0-9
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Submissions with fewer valid (non-blank) names are rejected by the socket layer
    MIN_ITEMS_PER_SUBMISSION = int(os.environ.get('MIN_ITEMS_PER_SUBMISSION', '3'))
    # Auto-neutral vote after this many seconds on one card. 0 disables.
    CHOICE_TIMEOUT_SEC = int(os.environ.get('CHOICE_TIMEOUT_SEC', '0'))
    # Comma-separated list of browser origins allowed to connect
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
        ).split(',') if o.strip()
    ]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    PORT = int(os.environ.get('PORT', '3001'))
