import os

# Server
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Uploaded audio lives here and is served under /uploads
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

# Drop a room as soon as its last member leaves instead of keeping it for the process lifetime
ROOM_EVICT_EMPTY = os.getenv("ROOM_EVICT_EMPTY", "false").lower() in ("1", "true", "yes")

# Client drift correction
SEEK_THRESHOLD = float(os.getenv("SEEK_THRESHOLD", "0.75"))  # seconds
SEEK_DEBOUNCE_MS = int(os.getenv("SEEK_DEBOUNCE_MS", "300"))
