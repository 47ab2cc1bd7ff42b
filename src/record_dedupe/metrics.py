"""String similarity metrics used to compare normalized document fields.

Jaro-Winkler is meant for short tokens such as printed names, where
transpositions and single-letter typos are common. The normalized Levenshtein
ratio is meant for the longer combined address string. Both return values in
[0, 1] and callers compare them against thresholds with ``>=``.
"""

from typing import List

WINKLER_PREFIX_CAP = 4
WINKLER_SCALING = 0.1


def jaro(s1: str, s2: str) -> float:
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0

    len1 = len(s1)
    len2 = len(s2)
    window = max(max(len1, len2) // 2 - 1, 0)
    s1_matched = [False] * len1
    s2_matched = [False] * len2

    matches = 0
    for i, char in enumerate(s1):
        start = max(0, i - window)
        end = min(i + window + 1, len2)
        for j in range(start, end):
            if s2_matched[j] or s2[j] != char:
                continue
            s1_matched[i] = True
            s2_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, char in enumerate(s1):
        if not s1_matched[i]:
            continue
        while not s2_matched[k]:
            k += 1
        if char != s2[k]:
            transpositions += 1
        k += 1

    return (
        matches / len1
        + matches / len2
        + (matches - transpositions / 2) / matches
    ) / 3


def common_prefix_length(s1: str, s2: str, cap: int = WINKLER_PREFIX_CAP) -> int:
    prefix = 0
    for a, b in zip(s1, s2):
        if a != b or prefix >= cap:
            break
        prefix += 1
    return prefix


def jaro_winkler(s1: str, s2: str) -> float:
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    jaro_score = jaro(s1, s2)
    prefix = common_prefix_length(s1, s2)
    return jaro_score + prefix * WINKLER_SCALING * (1 - jaro_score)


def levenshtein_distance(s1: str, s2: str) -> int:
    if s1 == s2:
        return 0
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    previous: List[int] = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            cost = 0 if c1 == c2 else 1
            current.append(min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def levenshtein_ratio(s1: str, s2: str) -> float:
    if not s1 and not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    longest = max(len(s1), len(s2))
    # One side empty: partial credit relative to the other side's length.
    if not s1:
        return 1 - len(s2) / longest
    if not s2:
        return 1 - len(s1) / longest
    return 1 - levenshtein_distance(s1, s2) / longest
