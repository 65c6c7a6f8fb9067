"""Central configuration for paths and constants."""

import os
from pathlib import Path

# Data directory — override with PAIRCHAT_DATA_DIR env var
DATA_DIR = Path(
    os.environ.get("PAIRCHAT_DATA_DIR", str(Path.home() / ".pairchat"))
)

# Backing files
STORE_PATH = DATA_DIR / "store.db"
AUTH_PATH = DATA_DIR / "auth.db"
SESSION_PATH = DATA_DIR / "session.json"

# Document store layout
PROFILES_COLLECTION = "profiles"
CONVERSATIONS_COLLECTION = "conversations"
MESSAGES_SUBCOLLECTION = "messages"

# Never allowed inside an identity string
CONVERSATION_ID_SEPARATOR = "_"

# Local key-value cache
SESSION_KEY = "userId"

# Avatars are stored inline as base64, so keep them small
AVATAR_MAX_BYTES = 500_000

# Auth provider rules
MIN_PASSWORD_LENGTH = 6
LOGIN_MAX_FAILURES = 5
LOGIN_LOCKOUT_SECONDS = 300
BCRYPT_ROUNDS = int(os.environ.get("PAIRCHAT_BCRYPT_ROUNDS", "12"))

# How often open live views check for commits made by other processes
STORE_POLL_INTERVAL = 0.25

# Tool server
TRANSCRIPT_MAX_CHARS = 50_000
