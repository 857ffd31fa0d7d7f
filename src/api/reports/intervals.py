import logging
import math
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# --- BUCKETING CONFIGURATION ---
ZERO_LABEL = "0 views"
MAX_INTERVALS = 10


class Bucket(NamedTuple):
    """
    One report column of the views table.

    The zero bucket carries no bounds. Any other bucket covers the closed
    interval [lower, upper]; lower == upper means a single-value bucket.
    """
    label: str
    lower: Optional[int] = None
    upper: Optional[int] = None

    @property
    def is_zero(self) -> bool:
        return self.lower is None and self.upper is None

    def contains(self, count: int) -> bool:
        if self.is_zero:
            return count == 0
        return self.lower <= count <= self.upper


ZERO_BUCKET = Bucket(ZERO_LABEL)

BucketSet = Tuple[Bucket, ...]
ViewCounts = Union[Iterable[int], Mapping[int, int]]


def _validate_count(count) -> int:
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValueError(f"View count must be an integer, got {count!r}")
    if count < 0:
        raise ValueError(f"View count cannot be negative: {count}")
    return count


def _make_bucket(lower: int, upper: int) -> Bucket:
    if lower == upper:
        label = "1 view" if lower == 1 else f"{lower} views"
    else:
        label = f"{lower}-{upper} views"
    return Bucket(label, lower, upper)


def design_buckets(view_counts: ViewCounts) -> BucketSet:
    """
    Derives the view-count columns for one module type.

    `view_counts` holds every observed per-user count across all instances of
    the type (or a count -> frequency table; only its keys matter). The range
    [min non-zero, max] is split into at most MAX_INTERVALS equal-width
    buckets, fewer when the counts are tightly clustered.

    Returns:
        A tuple of Buckets starting with the zero bucket.
    """
    if isinstance(view_counts, Mapping):
        view_counts = view_counts.keys()
    values = [_validate_count(c) for c in view_counts]

    buckets: List[Bucket] = [ZERO_BUCKET]
    if not values or max(values) == 0:
        return tuple(buckets)

    max_count = max(values)
    min_count = min(v for v in values if v > 0)
    spread = max_count - min_count + 1
    number_of_intervals = max(1, min(MAX_INTERVALS, math.isqrt(spread)))

    if number_of_intervals == 1 or max_count - min_count < number_of_intervals:
        buckets.append(_make_bucket(min_count, max_count))
        return tuple(buckets)

    interval_size = math.ceil(spread / number_of_intervals)
    for i in range(number_of_intervals):
        lower = min_count + i * interval_size
        upper = min(max_count, lower + interval_size - 1)
        buckets.append(_make_bucket(lower, upper))

    return tuple(buckets)


def bucket_labels(buckets: BucketSet) -> List[str]:
    """Column headers for a bucket set, zero bucket first."""
    return [b.label for b in buckets]


def _validate_buckets(buckets: BucketSet) -> None:
    """Ranged buckets must be labelled uniquely and tile [lower, upper] in order."""
    if not buckets or not isinstance(buckets[0], Bucket) or not buckets[0].is_zero:
        raise ValueError("Bucket set must start with the zero bucket")

    labels = {buckets[0].label}
    previous = None
    for bucket in buckets[1:]:
        if not isinstance(bucket, Bucket):
            raise ValueError(f"Malformed bucket: {bucket!r}")
        if bucket.lower is None or bucket.upper is None or not 1 <= bucket.lower <= bucket.upper:
            raise ValueError(f"Malformed bucket bounds: {bucket!r}")
        if bucket.label in labels:
            raise ValueError(f"Duplicate bucket label: {bucket.label!r}")
        if previous is not None and bucket.lower != previous.upper + 1:
            raise ValueError(f"Bucket {bucket!r} does not follow {previous!r}")
        labels.add(bucket.label)
        previous = bucket


def classify_counts(view_counts: Iterable[int], buckets: BucketSet, total_students: int) -> Dict[str, int]:
    """
    Builds the histogram of one module instance.

    Every qualifying student starts in the zero bucket; each non-zero count
    moves one student into the bucket that contains it.

    Args:
        view_counts: One count per user who viewed the instance.
        buckets: The bucket set designed for the instance's module type.
        total_students: Number of users holding the reported role in the course.

    Returns:
        Ordered mapping bucket label -> number of students.
    """
    if total_students < 0:
        raise ValueError(f"Student count cannot be negative: {total_students}")
    _validate_buckets(buckets)

    histogram = {b.label: 0 for b in buckets}
    histogram[ZERO_LABEL] = total_students
    ranged = buckets[1:]

    for raw in view_counts:
        count = _validate_count(raw)
        if count == 0:
            continue

        match = next((b for b in ranged if b.contains(count)), None)
        if match is not None:
            histogram[match.label] += 1
        else:
            logger.warning(
                "View count %s is not covered by buckets %s", count, bucket_labels(buckets)
            )
        histogram[ZERO_LABEL] -= 1

    if histogram[ZERO_LABEL] < 0:
        raise ValueError(
            f"More viewers than qualifying students ({total_students}); "
            f"zero bucket would be {histogram[ZERO_LABEL]}"
        )

    return histogram
