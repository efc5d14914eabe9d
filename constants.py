import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)
REDIS_DB = int(os.getenv("REDIS_DB", 0))

# "redis" or "memory"
STORE_BACKEND = os.getenv("STORE_BACKEND", "redis")

MAX_PLAYERS = int(os.getenv("MAX_PLAYERS", 8))
ROOM_TIMEOUT_SECONDS = int(os.getenv("ROOM_TIMEOUT_SECONDS", 24 * 60 * 60))
ROOM_TIMEOUT_MS = ROOM_TIMEOUT_SECONDS * 1000

JANITOR_ENABLED = os.getenv("JANITOR_ENABLED", "true").lower() in ("1", "true", "yes")
JANITOR_INTERVAL_SECONDS = int(os.getenv("JANITOR_INTERVAL_SECONDS", 24 * 60 * 60))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
