from __future__ import annotations

import logging
import sys

from vocab_trainer.bootstrap import ensure_initialized
from vocab_trainer.logging_utils import configure_logging

logger = logging.getLogger("vocab_trainer.init")


def main() -> int:
    configure_logging()
    try:
        result = ensure_initialized()
    except Exception:
        logger.exception("Initialization failed", extra={"event": "init_failed"})
        return 1

    logger.info(
        "Initialization finished",
        extra={"event": "init_finished", "source": result.source, "count": result.vocabulary_count},
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
