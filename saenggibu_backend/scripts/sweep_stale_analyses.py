"""
Mark records stuck in 분석중 as 실패.
Run from saenggibu_backend/: python -m scripts.sweep_stale_analyses [timeout_seconds]
"""
import sys

from saenggibu.core.database import SessionLocal
from saenggibu.core.logging_setup import configure_logging
from saenggibu.services.files import sweep_stale_analyses

configure_logging()

timeout = int(sys.argv[1]) if len(sys.argv) > 1 else None

db = SessionLocal()
try:
    swept = sweep_stale_analyses(db, timeout_seconds=timeout)
finally:
    db.close()
print(f"Swept {swept} stale analyses.")
