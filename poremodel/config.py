"""
Configuration for pore model loading.
"""

from dataclasses import dataclass

from poremodel.core.alphabet import ALPHABETS, Alphabet, get_alphabet
from poremodel.core.fast5_reader import DEFAULT_BASECALL_GROUP
from poremodel.core.model_io import DEFAULT_KNOWN_PREFIX


@dataclass
class PoreModelConfig:
    """Settings shared by the fast5 loading path and the CLI tools."""

    # Installation prefix stripped from fast5 model file paths when naming models
    known_prefix: str = DEFAULT_KNOWN_PREFIX

    # fast5 analysis group holding the basecalled model
    basecall_group: str = DEFAULT_BASECALL_GROUP

    # Alphabet name ('dna' or 'cpg')
    alphabet: str = 'dna'

    # Print diagnostics (shift offsets, progress)
    verbose: bool = True

    def __post_init__(self):
        """Validate configuration."""
        if self.known_prefix is None:
            self.known_prefix = ''
        if not self.basecall_group:
            raise ValueError("basecall_group must be a non-empty string")
        if self.alphabet.lower() not in ALPHABETS:
            raise ValueError(
                f"Unknown alphabet '{self.alphabet}'. Choose from: {', '.join(sorted(ALPHABETS))}"
            )

    def get_alphabet(self) -> Alphabet:
        return get_alphabet(self.alphabet)


def default_config() -> PoreModelConfig:
    return PoreModelConfig()
