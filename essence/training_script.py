"""
Lines users read aloud to train a voice. Slot ``i`` records line ``i``.
"""

from typing import List

TRAINING_SCRIPT = [
    "The quick brown fox jumps over the lazy dog.",
    "She sells seashells by the seashore while the sun shines brightly.",
    "How much wood would a woodchuck chuck if a woodchuck could chuck wood?",
    "Peter Piper picked a peck of pickled peppers from the patch.",
    "A gentle breeze whispered through the tall oak trees in the meadow.",
    "The five boxing wizards jump quickly over the narrow bridge.",
    "Jack and Jill went up the hill to fetch a pail of crystal clear water.",
    "Mary had a little lamb whose fleece was white as fresh snow.",
    "Humpty Dumpty sat on a wall and watched the world go by peacefully.",
    "Twinkle, twinkle, little star, how I wonder what you are up above.",
    "Rain, rain, go away, come again another sunny day in May.",
    "Hickory dickory dock, the mouse ran up the grandfather clock.",
    "Old MacDonald had a farm with many animals running around happily.",
    "Row, row, row your boat gently down the sparkling stream.",
    "London Bridge is falling down, my fair lady of great beauty.",
    "Ring around the rosie, a pocket full of posies in springtime.",
    "Hot cross buns, hot cross buns, one a penny, two a penny treats.",
    "Baa, baa, black sheep, have you any wool for the winter?",
    "Three blind mice, see how they run through the farmer's field.",
    "Itsy bitsy spider climbed up the water spout in the garden.",
]


def training_prompts(slot_count: int) -> List[str]:
    """The prompt lines for slots 0..slot_count-1."""
    if slot_count > len(TRAINING_SCRIPT):
        raise ValueError(
            f"Only {len(TRAINING_SCRIPT)} training lines exist, {slot_count} requested"
        )
    return TRAINING_SCRIPT[:slot_count]
