"""Huddle backend application.

Serve with ``uvicorn app.main:app`` or ``uvicorn app.main:create_app --factory``.
"""

from pathlib import Path
import sys

SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.exists() and str(SRC_PATH) not in sys.path:
    sys.path.append(str(SRC_PATH))
