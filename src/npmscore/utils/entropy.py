"""Shannon entropy for obfuscation heuristics."""

import math
from collections import Counter


def calculate_entropy(content: str | bytes | None) -> float:
    """Shannon entropy in bits per symbol.

    Text is measured over characters, bytes over byte values. Empty input has
    entropy 0. Ordinary source code sits around 4.5-5.5; packed or encrypted
    payloads approach 8.
    """
    if not content:
        return 0.0

    length = len(content)
    entropy = 0.0
    for count in Counter(content).values():
        p = count / length
        entropy -= p * math.log2(p)
    return entropy
