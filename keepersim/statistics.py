"""Quartile helpers used in the simulation summary."""

from __future__ import annotations


def find_median_and_split_data(values: list[int]) -> tuple[float, list[int], list[int]]:
    """Return (median, lower, upper) for sorted values.

    For an even count the median is the mean of the elements at n/2 and
    n/2 + 1 and the data splits at n/2; for an odd count it is the element
    at n//2 + 1, which is excluded from both halves. At least three values
    are needed.
    """
    count = len(values)
    if count % 2 == 0:
        idx = count // 2
        if idx + 1 >= count:
            raise ValueError(f"cannot split {count} values")
        median = (values[idx] + values[idx + 1]) / 2
        return median, list(values[:idx]), list(values[idx:])

    idx = count // 2 + 1
    if idx >= count:
        raise ValueError(f"cannot split {count} values")
    return float(values[idx]), list(values[:idx]), list(values[idx + 1:])


def find_lowest_and_outliers(lower_fence: float, values: list[int]) -> tuple[int, int]:
    """Return the lowest value below the (truncated) fence and how many there are.

    The lowest value is -1 when nothing falls below the fence.
    """
    fence = int(lower_fence)
    below = [value for value in values if value < fence]
    return (min(below) if below else -1), len(below)


def find_highest_and_outliers(upper_fence: float, values: list[int]) -> tuple[int, int]:
    """Return the highest value above the (truncated) fence and how many there are.

    The highest value is -1 when nothing lies above the fence.
    """
    fence = int(upper_fence)
    above = [value for value in values if value > fence]
    return max(above, default=-1), len(above)