"""
poremodel - Per-k-mer nanopore emission models: loading from text model
files and basecalled fast5 reads, per-read calibration, and serialization.
"""

__version__ = "1.0.0"

from poremodel.core.alphabet import Alphabet, DNA_ALPHABET, METHYL_CPG_ALPHABET, get_alphabet
from poremodel.core.pore_model import PoreModel, ModelState
from poremodel.core.model_io import load_model, save_model, load_model_from_fast5
from poremodel.core.fast5_reader import Fast5Reader
from poremodel.core.errors import (
    PoreModelError,
    ModelFormatError,
    ModelCompletenessError,
    ModelNumericError,
    ModelNotCalibratedError,
    Fast5FormatError,
)
