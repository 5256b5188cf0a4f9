"""
Pore model I/O module

Handles the two ways of building a PoreModel and the text writer:
- Text model files (load_model / save_model):

    #model_name <name>
    #shift_offset <float>
    kmer    level_mean  level_stdv  sd_mean  sd_stdv
    AAAAAA  95.2        2.1         4.9      1.2
    ...

  Rows may appear in any order; each is stored at its k-mer rank.
  Extra trailing columns (e.g. ONT 'weight') are ignored.

- Per-read models stored in a basecalled fast5 (load_model_from_fast5).
  These carry their own scaling coefficients and are baked on load.

Every k-mer of length k must be present exactly once. Malformed input raises
ModelFormatError; missing or duplicate k-mers raise ModelCompletenessError.
"""

import math
import warnings
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from poremodel.core.alphabet import Alphabet, DNA_ALPHABET
from poremodel.core.errors import ModelCompletenessError, ModelFormatError
from poremodel.core.fast5_reader import DEFAULT_KNOWN_PREFIX
from poremodel.core.pore_model import (
    RAW_FIELDS,
    RAW_STATE_DTYPE,
    SCALING_FIELDS,
    PoreModel,
    check_state_values,
)


PATH_SEPARATORS = ('/', '\\')

# (line number or None, kmer, level_mean, level_stdv, sd_mean, sd_stdv)
Row = Tuple[Optional[int], str, float, float, float, float]


# =============================================================================
# Shared
# =============================================================================

def _states_from_rows(rows: Iterable[Row], alphabet: Alphabet,
                      path: str = None) -> Tuple[int, np.ndarray]:
    """
    Place rows into a rank-indexed state array.

    k is taken from the first row. Every row must have a k-mer of length k
    over the alphabet, and every rank must be written exactly once.

    Returns:
        (k, states)
    """
    k = None
    states = None
    written = None

    for line_number, kmer, *values in rows:
        if k is None:
            k = len(kmer)
            if k == 0:
                raise ModelFormatError("empty k-mer", path, line_number)
            n_states = alphabet.count_kmers(k)
            states = np.zeros(n_states, dtype=RAW_STATE_DTYPE)
            written = np.zeros(n_states, dtype=bool)

        if len(kmer) != k:
            raise ModelFormatError(
                f"k-mer '{kmer}' has length {len(kmer)}, expected {k}", path, line_number
            )
        try:
            rank = alphabet.rank(kmer, k)
        except ValueError as e:
            raise ModelFormatError(str(e), path, line_number) from None

        if written[rank]:
            raise ModelCompletenessError(f"duplicate entry for k-mer '{kmer}'", path)

        for field, value in zip(RAW_FIELDS, values):
            states[field][rank] = value
        written[rank] = True

    if k is None:
        raise ModelFormatError("no k-mer rows found", path)

    n_written = int(written.sum())
    if n_written != len(states):
        missing = [alphabet.unrank(int(r), k) for r in np.flatnonzero(~written)]
        shown = ', '.join(missing[:5]) + (', ...' if len(missing) > 5 else '')
        raise ModelCompletenessError(
            f"model has {n_written} of {len(states)} {k}-mers; missing: {shown}",
            path, missing=missing,
        )

    check_state_values(states, alphabet, k, path)
    return k, states


def shorten_model_name(model_file: str, known_prefix: Optional[str] = DEFAULT_KNOWN_PREFIX) -> str:
    """
    Turn a model file path into a flat model name.

    The known installation prefix is dropped when present, then every path
    separator is replaced with '_'.

    >>> shorten_model_name('/opt/chimaera/model/r7.3_e6_70bps_6mer/template_median68pA.model')
    'r7.3_e6_70bps_6mer_template_median68pA.model'
    """
    name = model_file
    if known_prefix:
        pos = name.find(known_prefix)
        if pos != -1:
            name = name[pos + len(known_prefix):]

    for sep in PATH_SEPARATORS:
        name = name.replace(sep, '_')
    return name


def _format_value(value) -> str:
    return repr(float(value))


# =============================================================================
# Text model files
# =============================================================================

def _parse_header(line: str, header: Dict[str, str], path: str, line_number: int):
    fields = line[1:].split()
    if not fields or fields[0] not in ('model_name', 'shift_offset'):
        return  # comment
    if len(fields) < 2:
        raise ModelFormatError(f"header '{fields[0]}' has no value", path, line_number)
    header[fields[0]] = fields[1]


def _parse_row(line: str, path: str, line_number: int) -> Row:
    fields = line.split()
    if len(fields) < 1 + len(RAW_FIELDS):
        raise ModelFormatError(
            f"expected {1 + len(RAW_FIELDS)} fields "
            f"(kmer {' '.join(RAW_FIELDS)}), got {len(fields)}",
            path, line_number,
        )
    try:
        values = [float(v) for v in fields[1:1 + len(RAW_FIELDS)]]
    except ValueError as e:
        raise ModelFormatError(f"non-numeric value: {e}", path, line_number) from None
    return (line_number, fields[0], *values)


def read_model_file(filepath: str) -> Tuple[Dict[str, str], List[Row]]:
    """
    Split a text model file into header values and data rows.

    Returns:
        (header, rows) where header maps 'model_name'/'shift_offset' to their
        string values and rows are in file order
    """
    header: Dict[str, str] = {}
    rows: List[Row] = []

    with open(filepath, 'rb') as f:
        for line_number, raw in enumerate(f, 1):
            try:
                line = raw.decode('utf-8').strip()
            except UnicodeDecodeError as e:
                raise ModelFormatError(f"invalid UTF-8 text ({e.reason})", filepath, line_number) from None
            if not line:
                continue
            if line.startswith('#'):
                _parse_header(line, header, filepath, line_number)
                continue
            if line.startswith('kmer'):
                continue
            rows.append(_parse_row(line, filepath, line_number))

    return header, rows


def load_model(filepath: str, alphabet: Alphabet = DNA_ALPHABET,
               verbose: bool = True) -> PoreModel:
    """
    Load a pore model from a text model file.

    The returned model has identity scaling and is not baked.

    Args:
        filepath: Path to model file
        alphabet: Alphabet used to rank k-mers
        verbose: Report a non-default shift offset on stdout

    Returns:
        PoreModel in the RAW state

    Raises:
        ModelFormatError: malformed header or row, bad values
        ModelCompletenessError: missing or duplicate k-mers
        OSError: file cannot be read
    """
    header, rows = read_model_file(filepath)

    shift_offset = 0.0
    if 'shift_offset' in header:
        try:
            shift_offset = float(header['shift_offset'])
        except ValueError:
            raise ModelFormatError(
                f"invalid shift_offset '{header['shift_offset']}'", filepath
            ) from None
        if not math.isfinite(shift_offset):
            raise ModelFormatError(f"shift_offset must be finite, got {shift_offset}", filepath)
        if verbose:
            print(f"Found shift offset of {shift_offset:.2f} in {filepath}")

    k, states = _states_from_rows(rows, alphabet, filepath)

    return PoreModel(k, alphabet, states=states,
                     name=header.get('model_name', ''),
                     model_filename=filepath,
                     shift_offset=shift_offset)


def save_model(model: PoreModel, filepath: str, alphabet: Alphabet = None,
               model_name: str = '', verbose: bool = False):
    """
    Write a model's raw parameters as a text model file.

    Rows are written in lexicographic k-mer order. Scaling coefficients and
    calibrated values are not saved.

    Args:
        model: PoreModel
        filepath: Output path
        alphabet: Alphabet to enumerate k-mers with (default: model.alphabet)
        model_name: Name written to the header (default: model.name)
        verbose: Print the shift offset being written
    """
    if alphabet is None:
        alphabet = model.alphabet
    if alphabet.count_kmers(model.k) != model.num_states:
        raise ValueError(
            f"Alphabet '{alphabet.name}' has {alphabet.count_kmers(model.k)} {model.k}-mers "
            f"but model has {model.num_states} states"
        )

    name = model_name or model.name
    if not name:
        warnings.warn(f"Model has no name; writing 'unknown' to {filepath}")
        name = 'unknown'

    if verbose:
        print(f"Shift offset: {model.shift_offset:.2f}")

    states = model.states
    with open(filepath, 'w') as f:
        f.write(f"#model_name\t{name}\n")
        f.write(f"#shift_offset\t{_format_value(model.shift_offset)}\n")
        for kmer in alphabet.iter_kmers(model.k):
            row = states[alphabet.rank(kmer, model.k)]
            values = '\t'.join(_format_value(row[field]) for field in RAW_FIELDS)
            f.write(f"{kmer}\t{values}\n")


# =============================================================================
# fast5 per-read models
# =============================================================================

def load_model_from_fast5(reader, strand: int, alphabet: Alphabet = DNA_ALPHABET,
                          known_prefix: Optional[str] = DEFAULT_KNOWN_PREFIX) -> PoreModel:
    """
    Build a calibrated model from the model stored in a read's fast5.

    Args:
        reader: Object with get_model, get_model_parameters and
            get_model_file (e.g. Fast5Reader)
        strand: 0 (template) or 1 (complement)
        alphabet: Alphabet used to rank k-mers
        known_prefix: Prefix stripped from the stored model file path when
            naming the model ('' or None keeps the full path)

    Returns:
        PoreModel in the CALIBRATED state, shift_offset 0

    Raises:
        ModelCompletenessError: table size differs from the number of k-mers
        ModelFormatError: bad k-mer or values
    """
    path = getattr(reader, 'filepath', None)
    entries = list(reader.get_model(strand))
    if not entries:
        raise ModelFormatError(f"empty model table for strand {strand}", path)

    k = len(entries[0].kmer)
    n_expected = alphabet.count_kmers(k)
    if len(entries) != n_expected:
        raise ModelCompletenessError(
            f"model table for strand {strand} has {len(entries)} entries, "
            f"expected {n_expected} {k}-mers",
            path,
        )

    rows = ((None, e.kmer, e.level_mean, e.level_stdv, e.sd_mean, e.sd_stdv) for e in entries)
    k, states = _states_from_rows(rows, alphabet, path)

    params = reader.get_model_parameters(strand)
    scaling = {field: params[field] for field in SCALING_FIELDS}

    model = PoreModel(k, alphabet, states=states,
                      name=shorten_model_name(reader.get_model_file(strand), known_prefix),
                      model_filename=path or '',
                      shift_offset=0.0,
                      **scaling)
    model.bake()
    return model
