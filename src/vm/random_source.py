"""Seeded random source for the RAND instruction.

Knuth's subtractive generator (as used by the .NET runtime's seeded
System.Random), so ROMs and recorded test traces produce the same byte
sequence for the same seed: seed 123 yields 3 as its first byte.
"""

import random
from typing import List, Optional

MBIG = 2147483647
MSEED = 161803398


class SubtractiveRandom:
    """Deterministic 31-bit generator with a 55-entry lagged state."""

    def __init__(self, seed: Optional[int] = None):
        if seed is None:
            seed = random.randrange(MBIG)
        self.seed = seed
        self._state: List[int] = [0] * 56

        mj = MSEED - (MBIG if seed == -MBIG - 1 else abs(seed))
        self._state[55] = mj
        mk = 1
        for i in range(1, 55):
            ii = (21 * i) % 55
            self._state[ii] = mk
            mk = mj - mk
            if mk < 0:
                mk += MBIG
            mj = self._state[ii]

        for _ in range(4):
            for i in range(1, 56):
                self._state[i] -= self._state[1 + (i + 30) % 55]
                if self._state[i] < 0:
                    self._state[i] += MBIG

        self._inext = 0
        self._inextp = 21

    def next(self) -> int:
        """Next value in [0, 2**31 - 1)."""
        inext = self._inext + 1
        if inext >= 56:
            inext = 1
        inextp = self._inextp + 1
        if inextp >= 56:
            inextp = 1

        result = self._state[inext] - self._state[inextp]
        if result == MBIG:
            result -= 1
        if result < 0:
            result += MBIG

        self._state[inext] = result
        self._inext = inext
        self._inextp = inextp
        return result

    def next_byte(self) -> int:
        return self.next() & 0xFF
