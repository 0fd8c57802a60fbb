"""
Application configuration.

Values are read from the environment once at import time. A `.env` file in
the backend directory (or the repository root) is loaded first so local
development does not need exported variables; real environment variables
always win.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).parent.parent
REPO_ROOT = BACKEND_DIR.parent

for env_file in (BACKEND_DIR / ".env", REPO_ROOT / ".env"):
    if env_file.exists():
        load_dotenv(dotenv_path=env_file, override=False)

# Admin token compared against the x-admin-token header. No default: when
# unset, every admin route answers 401.
ADMIN_SECRET = os.getenv("ADMIN_SECRET")

DB_PATH = os.getenv("SCRIBELOOP_DB_PATH", "data/scribeloop.db")

DEFAULT_BOOK_TITLE = os.getenv("SCRIBELOOP_DEFAULT_BOOK_TITLE", "Mon Manuscrit")

# Touch devices report every intermediate selection while a handle is dragged
SELECTION_DEBOUNCE_SECONDS = float(os.getenv("SCRIBELOOP_SELECTION_DEBOUNCE", "0.5"))

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
