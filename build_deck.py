"""
kotodeck: Japanese Vocabulary Deck Builder
------------------------------------------

Main entry point: loads the dictionaries, merges and ranks the cards,
attaches audio and example sentences, and writes the Anki package.
"""

import asyncio
import logging
import sys

from kotodeck.deck import DeckBuilder
from kotodeck.utils import setup_logger

logger = logging.getLogger("kotodeck")


async def main() -> bool:
    """Main entry point."""
    builder = DeckBuilder()

    success = await builder.build()
    if not success:
        return False

    builder.export()
    return True


def cli() -> None:
    setup_logger("kotodeck")
    try:
        success = asyncio.run(main())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n[!] Aborted by user.")
        sys.exit(1)
    except Exception:
        logger.exception("[ERROR] Fatal error")
        sys.exit(1)


if __name__ == "__main__":
    cli()
