"""Pore model representation, calibration and I/O."""

from poremodel.core.alphabet import Alphabet, DNA_ALPHABET, METHYL_CPG_ALPHABET, get_alphabet
from poremodel.core.pore_model import PoreModel, ModelState, RAW_STATE_DTYPE, SCALED_STATE_DTYPE
from poremodel.core.model_io import load_model, save_model, load_model_from_fast5, shorten_model_name
from poremodel.core.fast5_reader import Fast5Reader
