"""
Alphabet module for poremodel

Maps k-mers over a small fixed alphabet to dense integer ranks and back.
Ranks are positional base-N numbers with the first symbol most significant,
so rank order and lexicographic order agree for a sorted symbol set.

Provides:
- Alphabet: rank/unrank, k-mer enumeration and lexicographic successors
- DNA_ALPHABET: A, C, G, T
- METHYL_CPG_ALPHABET: A, C, G, M, T (M = 5-methylcytosine in a CpG)
"""

from typing import Dict, Iterator, List, Tuple


class Alphabet:
    """
    Dense k-mer ranking over an ordered symbol set.

    Lookup tables for each k are built once and cached on the instance.
    """

    def __init__(self, name: str, symbols: str):
        if not symbols:
            raise ValueError("Alphabet needs at least one symbol")
        if len(set(symbols)) != len(symbols):
            raise ValueError(f"Alphabet symbols must be unique, got '{symbols}'")

        self.name = name
        self.symbols = symbols
        self.size = len(symbols)
        self._symbol_rank: Dict[str, int] = {s: i for i, s in enumerate(symbols)}
        self._cache: Dict[int, Tuple[Dict[str, int], List[str]]] = {}

    def __repr__(self) -> str:
        return f"Alphabet(name={self.name!r}, symbols={self.symbols!r})"

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._symbol_rank

    def symbol(self, i: int) -> str:
        """Return the i-th symbol of the alphabet."""
        return self.symbols[i]

    def count_kmers(self, k: int) -> int:
        """Number of distinct k-mers of length k."""
        if k < 1:
            raise ValueError(f"k-mer length must be positive, got {k}")
        return self.size ** k

    def is_valid_kmer(self, kmer: str) -> bool:
        return all(c in self._symbol_rank for c in kmer)

    def rank(self, kmer: str, k: int = None) -> int:
        """
        Dense rank of the first k symbols of kmer.

        Args:
            kmer: k-mer string
            k: Length to rank (default: len(kmer))

        Returns:
            Integer in [0, count_kmers(k))

        Raises:
            ValueError: kmer shorter than k or containing foreign symbols
        """
        if k is None:
            k = len(kmer)
        if len(kmer) < k:
            raise ValueError(f"k-mer '{kmer}' is shorter than k={k}")

        r = 0
        for c in kmer[:k]:
            try:
                r = r * self.size + self._symbol_rank[c]
            except KeyError:
                raise ValueError(
                    f"Symbol '{c}' in k-mer '{kmer}' is not in the {self.name} alphabet"
                ) from None
        return r

    def unrank(self, rank: int, k: int) -> str:
        """Inverse of rank()."""
        n = self.count_kmers(k)
        if not 0 <= rank < n:
            raise ValueError(f"Rank {rank} out of range for k={k} ({n} k-mers)")

        chars = []
        for _ in range(k):
            rank, i = divmod(rank, self.size)
            chars.append(self.symbols[i])
        return ''.join(reversed(chars))

    def lexicographic_successor(self, kmer: str) -> str:
        """
        Next k-mer in lexicographic order.

        The last k-mer wraps around to the first one (all first-symbol).
        """
        chars = list(kmer)
        i = len(chars) - 1
        while i >= 0:
            r = self._symbol_rank[chars[i]]
            if r + 1 < self.size:
                chars[i] = self.symbols[r + 1]
                break
            chars[i] = self.symbols[0]
            i -= 1
        return ''.join(chars)

    def first_kmer(self, k: int) -> str:
        return self.symbols[0] * k

    def iter_kmers(self, k: int) -> Iterator[str]:
        """Yield all k-mers of length k in lexicographic order."""
        kmer = self.first_kmer(k)
        for _ in range(self.count_kmers(k)):
            yield kmer
            kmer = self.lexicographic_successor(kmer)

    def kmer_list(self, k: int) -> List[str]:
        """All k-mers indexed by rank (cached)."""
        return self._get_tables(k)[1]

    def rank_lookup(self, k: int) -> Dict[str, int]:
        """k-mer -> rank dict (cached)."""
        return self._get_tables(k)[0]

    def _get_tables(self, k: int) -> Tuple[Dict[str, int], List[str]]:
        if k not in self._cache:
            kmers = [self.unrank(r, k) for r in range(self.count_kmers(k))]
            self._cache[k] = ({kmer: r for r, kmer in enumerate(kmers)}, kmers)
        return self._cache[k]


DNA_ALPHABET = Alphabet('dna', 'ACGT')
METHYL_CPG_ALPHABET = Alphabet('cpg', 'ACGMT')

ALPHABETS = {
    'dna': DNA_ALPHABET,
    'cpg': METHYL_CPG_ALPHABET,
}


def get_alphabet(name: str) -> Alphabet:
    """Look up a built-in alphabet by name ('dna' or 'cpg')."""
    try:
        return ALPHABETS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown alphabet '{name}'. Choose from: {', '.join(sorted(ALPHABETS))}"
        ) from None
