import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if SRC.exists():
    sys.path.insert(0, str(SRC))

# Register shared Hypothesis profiles for deterministic CI runs and fast local loops.
from tests.util import hypothesis_profiles  # noqa: E402,F401  pylint: disable=unused-import


@pytest.fixture(autouse=True)
def _reset_chainhash_logger() -> Iterator[None]:
    """Undo handler/propagation changes made by ``configure_logging`` in a test."""

    yield
    logger = logging.getLogger("chainhash")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
