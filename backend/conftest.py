# Ensure 'achieva' package (backend/achieva) is importable when running tests from repo root.
import sys, os, tempfile
BACKEND_DIR = os.path.abspath(os.path.dirname(__file__))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# Point storage and the database at a throwaway directory before settings load.
_TMP = tempfile.mkdtemp(prefix="achieva-tests-")
os.environ.setdefault("STORAGE_PATH", _TMP)
os.environ.setdefault("LOG_FILE", os.path.join(_TMP, "app.log"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'test.db')}")
os.environ.setdefault("RATE_LIMIT_DEFAULT", "100000")
os.environ.setdefault("MESSAGE_POLL_INTERVAL", "0.05")
os.environ.setdefault("COMMENT_POLL_INTERVAL", "0.05")

import pytest


@pytest.fixture(autouse=True)
def _fresh_state():
    from achieva import main
    from achieva.models import reset_db
    from achieva.services import auth
    from achieva.services.cache import clear_all
    reset_db()
    clear_all()
    auth.failed_attempts.clear()
    main._REQUEST_LOG.clear()
    yield
