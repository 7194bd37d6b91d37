"""Running reputation average.

The average is folded one rating at a time with integer floor division, so
after several ratings it can sit below the batch mean of the same ratings:
ratings 1, 100, 100 fold to 50 then 66, while the batch mean floors to 67.
"""

from __future__ import annotations

MIN_RATING = 1
MAX_RATING = 100


def fold_rating(average: int, count: int, rating: int) -> tuple[int, int]:
    """Fold one rating into a running average.

    Returns:
        Tuple of (new average, new count).
    """
    if count < 0:
        raise ValueError(f"Rating count cannot be negative: {count}")
    new_count = count + 1
    return (average * count + rating) // new_count, new_count

