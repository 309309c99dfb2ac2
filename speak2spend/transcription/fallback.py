"""Local example transcripts used when no speech backend is available."""

import logging
import random
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


EXAMPLE_TRANSCRIPTS = (
    # Singapore-specific examples
    "I spent twelve dollars on chicken rice at Maxwell Food Centre",
    "Bought bubble tea for five dollars at Gong Cha",
    "MRT fare two dollars and fifty cents",
    # International examples
    "Bought coffee at Starbucks for four dollars and fifty cents",
    "McDonalds meal cost eight dollars and ninety five cents",
    "Uber ride to downtown fifteen dollars",
    "Grocery shopping at the supermarket thirty two dollars",
    "Gas station fill up forty five dollars",
    "Restaurant dinner twenty eight dollars",
    "Online shopping on Amazon eighteen dollars and ninety nine cents",
)

BACKEND_FAILURE_TRANSCRIPT = "Demo: I spent ten dollars on food"


class FallbackTranscriptGenerator:
    """Picks an example transcript so the flow works without a backend."""

    def __init__(self,
                 examples: Sequence[str] = EXAMPLE_TRANSCRIPTS,
                 rng: Optional[random.Random] = None):
        if not examples:
            raise ValueError("At least one example transcript is required")
        self.examples = tuple(examples)
        self.rng = rng or random.Random()

    def sample(self) -> str:
        transcript = self.rng.choice(self.examples)
        logger.debug(f"Fallback transcript: '{transcript}'")
        return transcript
