import os

DB_PATH = os.environ.get("DB_PATH", "board.db")
DB_TIMEOUT = float(os.environ.get("DB_TIMEOUT", "5.0"))  # seconds

# Collection names
THREADS_COLLECTION = os.environ.get("THREADS_COLLECTION", "threads")
REPLIES_COLLECTION = os.environ.get("REPLIES_COLLECTION", "replies")

# Test mode lowers the bcrypt work factor
TEST_MODE = os.environ.get("BOARD_ENV", "") == "test"
BCRYPT_ROUNDS = 12
BCRYPT_ROUNDS_TEST = 4

# Server Configuration
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = int(os.environ.get("PORT", "3000"))

# Listing Defaults
THREAD_LIST_LIMIT = 10
REPLY_PREVIEW_LIMIT = 3

# Validation Constants
OBJECT_ID_LENGTH = 24
TEXT_MIN_LENGTH = 1
TEXT_MAX_LENGTH = 50000
BOARD_NAME_MIN_LENGTH = 1
BOARD_NAME_MAX_LENGTH = 100
DELETE_PASSWORD_MIN_LENGTH = 1
DELETE_PASSWORD_MAX_LENGTH = 72  # bcrypt only reads the first 72 bytes

# Tombstone written over a deleted reply's text
DELETED_TEXT = "[deleted]"

# HTTP Status Codes
HTTP_BAD_REQUEST = 400
HTTP_INTERNAL_SERVER_ERROR = 500
