"""
Python implementation of the mulberry32 PRNG used to place seed points.

mulberry32 is a tiny 32-bit generator by Tommy Ettinger. Keeping the exact
integer arithmetic means a given seed value always lands the same seed
points, whichever implementation produced them.
"""


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


def _imul(a, b):
    """32-bit integer multiply, keeping the low 32 bits."""
    return (_uint32(a) * _uint32(b)) & 0xFFFFFFFF


class Mulberry32:
    """
    mulberry32 generator with a single 32-bit state word.

    All intermediate values are kept as unsigned 32-bit integers so the bit
    patterns match the reference implementation exactly.
    """

    def __init__(self, seed):
        """Initialize with an integer seed (reduced modulo 2**32)."""
        self.call_count = 0
        self.state = _uint32(seed)

    def random(self):
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        self.state = (self.state + 0x6D2B79F5) & 0xFFFFFFFF
        t = self.state
        r = _imul(t ^ (t >> 15), 1 | t)
        r ^= _uint32(r + _imul(r ^ (r >> 7), 61 | r))
        return _uint32(r ^ (r >> 14)) / 4294967296.0
