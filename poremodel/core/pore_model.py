"""
Pore model module

A PoreModel holds, for every k-mer of a fixed length, the parameters of
two distributions:
- the event level (Gaussian: level_mean, level_stdv)
- the event spread (inverse Gaussian, stored as sd_mean, sd_stdv)

Raw parameters are stored in a numpy structured array indexed by k-mer rank.
Per-read calibration (shift/scale/var and scale_sd/var_sd) is applied by
bake(), which fills a second array of calibrated parameters together with the
logs needed for fast likelihood evaluation.

The model is either RAW (calibrated parameters unavailable) or CALIBRATED.
Only bake() enters CALIBRATED; any change to raw states or coefficients drops
back to RAW, and re-bakes straight away if the model had been calibrated.

Text and fast5 I/O live in poremodel.core.model_io.
"""

from enum import Enum
from typing import Dict, Optional

import numpy as np
import pandas as pd

from poremodel.core.alphabet import Alphabet, DNA_ALPHABET
from poremodel.core.emissions import log_normal_pdf, log_invgauss_pdf
from poremodel.core.errors import (
    ModelCompletenessError,
    ModelFormatError,
    ModelNotCalibratedError,
    ModelNumericError,
)
from poremodel.core.fast5_reader import DEFAULT_KNOWN_PREFIX


RAW_FIELDS = ('level_mean', 'level_stdv', 'sd_mean', 'sd_stdv')

RAW_STATE_DTYPE = np.dtype([
    ('level_mean', np.float64),
    ('level_stdv', np.float64),
    ('sd_mean', np.float64),
    ('sd_stdv', np.float64),
    ('sd_lambda', np.float64),  # derived in bake()
])

SCALED_STATE_DTYPE = np.dtype([
    ('level_mean', np.float64),
    ('level_stdv', np.float64),
    ('level_log_stdv', np.float64),
    ('sd_mean', np.float64),
    ('sd_lambda', np.float64),
    ('sd_log_lambda', np.float64),
    ('sd_stdv', np.float64),
])

SCALING_FIELDS = ('shift', 'scale', 'drift', 'var', 'scale_sd', 'var_sd')

IDENTITY_SCALING = {
    'shift': 0.0,
    'scale': 1.0,
    'drift': 0.0,
    'var': 1.0,
    'scale_sd': 1.0,
    'var_sd': 1.0,
}


class ModelState(Enum):
    RAW = 'raw'
    CALIBRATED = 'calibrated'


def check_state_values(states: np.ndarray, alphabet: Alphabet = None, k: int = None,
                       path: str = None):
    """
    Reject rows whose parameters cannot be calibrated.

    level_stdv, sd_mean and sd_stdv must be finite and > 0 (they are divided
    by or logged in bake); level_mean must be finite.

    Raises:
        ModelFormatError naming the first offending k-mer
    """
    bad = ~np.isfinite(states['level_mean'])
    for field in ('level_stdv', 'sd_mean', 'sd_stdv'):
        values = states[field]
        bad |= ~np.isfinite(values) | (values <= 0)

    if bad.any():
        idx = int(np.flatnonzero(bad)[0])
        label = alphabet.unrank(idx, k) if alphabet is not None and k else f"rank {idx}"
        row = states[idx]
        raise ModelFormatError(
            f"Invalid parameters for {label}: level_mean={row['level_mean']}, "
            f"level_stdv={row['level_stdv']}, sd_mean={row['sd_mean']}, "
            f"sd_stdv={row['sd_stdv']} (stdv and sd values must be finite and > 0)",
            path=path,
        )


def as_raw_states(values, n_states: int) -> np.ndarray:
    """
    Copy raw parameters into a fresh RAW_STATE_DTYPE array.

    Accepts a structured array with the raw field names, or anything that
    converts to a float array of shape (n_states, 4) or (n_states, 5) with
    columns level_mean, level_stdv, sd_mean, sd_stdv[, sd_lambda].
    """
    out = np.zeros(n_states, dtype=RAW_STATE_DTYPE)

    if isinstance(values, np.ndarray) and values.dtype.names:
        missing = [f for f in RAW_FIELDS if f not in values.dtype.names]
        if missing:
            raise ValueError(f"State array is missing fields: {missing}")
        if len(values) != n_states:
            raise ModelCompletenessError(
                f"Expected {n_states} states, got {len(values)}"
            )
        for field in RAW_FIELDS:
            out[field] = values[field]
        return out

    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] not in (4, 5):
        raise ValueError(
            f"Expected states of shape ({n_states}, 4), got {arr.shape}"
        )
    if arr.shape[0] != n_states:
        raise ModelCompletenessError(
            f"Expected {n_states} states, got {arr.shape[0]}"
        )
    for col, field in enumerate(RAW_FIELDS):
        out[field] = arr[:, col]
    return out


def _coefficient(name: str) -> property:
    """Calibration coefficient; assignment goes through set_scaling()."""
    def fget(self):
        return self._scaling[name]

    def fset(self, value):
        self.set_scaling(**{name: value})

    return property(fget, fset, doc=f"Calibration coefficient '{name}'.")


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class PoreModel:
    """
    Per-k-mer emission model with per-read calibration.

    Attributes:
        k: k-mer length
        alphabet: Alphabet used to rank k-mers
        name: Model name (from '#model_name' or the fast5 model file)
        model_filename: File the model was loaded from
        shift_offset: Baseline correction added to another model's shift
            when this model replaces its states (see update_from_model)
        shift, scale, drift, var, scale_sd, var_sd: Calibration coefficients.
            Assigning one behaves like set_scaling(). drift is kept for
            format compatibility and not applied.

    states and scaled_states are read-only views; raw parameters change
    only through update_states() or update_from_model().
    """

    shift = _coefficient('shift')
    scale = _coefficient('scale')
    drift = _coefficient('drift')
    var = _coefficient('var')
    scale_sd = _coefficient('scale_sd')
    var_sd = _coefficient('var_sd')

    def __init__(self, k: int, alphabet: Alphabet = DNA_ALPHABET, states=None,
                 name: str = '', model_filename: str = '',
                 shift_offset: float = 0.0, **scaling):
        self.k = int(k)
        self.alphabet = alphabet
        self.name = name
        self.model_filename = model_filename
        self.shift_offset = float(shift_offset)

        self._scaling: Dict[str, float] = {
            field: float(scaling.pop(field, default))
            for field, default in IDENTITY_SCALING.items()
        }
        if scaling:
            raise TypeError(f"Unknown scaling parameters: {sorted(scaling)}")

        n = alphabet.count_kmers(self.k)
        if states is None:
            self._states = np.zeros(n, dtype=RAW_STATE_DTYPE)
        else:
            self._states = as_raw_states(states, n)
            check_state_values(self._states, alphabet, self.k)

        self._scaled_states: Optional[np.ndarray] = None
        self.state = ModelState.RAW

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def from_file(cls, filepath: str, alphabet: Alphabet = DNA_ALPHABET,
                  verbose: bool = True) -> 'PoreModel':
        """Load a model from a text model file. See model_io.load_model."""
        from poremodel.core.model_io import load_model
        return load_model(filepath, alphabet, verbose=verbose)

    @classmethod
    def from_fast5(cls, reader, strand: int, alphabet: Alphabet = DNA_ALPHABET,
                   known_prefix: Optional[str] = DEFAULT_KNOWN_PREFIX) -> 'PoreModel':
        """
        Build a calibrated model from a read's fast5. See model_io.load_model_from_fast5.

        known_prefix '' or None keeps the full model file path in the name.
        """
        from poremodel.core.model_io import load_model_from_fast5
        return load_model_from_fast5(reader, strand, alphabet, known_prefix=known_prefix)

    def write(self, filepath: str, alphabet: Alphabet = None, model_name: str = '',
              verbose: bool = False):
        """Write raw parameters as a text model file. See model_io.save_model."""
        from poremodel.core.model_io import save_model
        save_model(self, filepath, alphabet=alphabet, model_name=model_name, verbose=verbose)

    def copy(self) -> 'PoreModel':
        other = PoreModel(self.k, self.alphabet, name=self.name,
                          model_filename=self.model_filename,
                          shift_offset=self.shift_offset,
                          **self.scaling_parameters())
        other._states = self._states.copy()
        if self.is_scaled:
            other._scaled_states = self._scaled_states.copy()
            other.state = ModelState.CALIBRATED
        return other

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    @property
    def states(self) -> np.ndarray:
        """Raw states indexed by k-mer rank (RAW_STATE_DTYPE)."""
        return _read_only(self._states)

    @property
    def scaled_states(self) -> np.ndarray:
        """Calibrated states indexed by k-mer rank (SCALED_STATE_DTYPE)."""
        if self.state is not ModelState.CALIBRATED:
            raise ModelNotCalibratedError(
                f"Model '{self.name}' is not calibrated; call bake() first"
            )
        return _read_only(self._scaled_states)

    @property
    def is_scaled(self) -> bool:
        return self.state is ModelState.CALIBRATED

    @property
    def num_states(self) -> int:
        return len(self._states)

    def kmer_rank(self, kmer: str) -> int:
        return self.alphabet.rank(kmer, self.k)

    def get_state(self, kmer: str) -> np.void:
        return self._states[self.kmer_rank(kmer)].copy()

    def get_scaled_state(self, kmer: str) -> np.void:
        return self.scaled_states[self.kmer_rank(kmer)].copy()

    def scaling_parameters(self) -> Dict[str, float]:
        return {field: self._scaling[field] for field in SCALING_FIELDS}

    # -------------------------------------------------------------------------
    # Calibration
    # -------------------------------------------------------------------------

    def _invalidate(self):
        self._scaled_states = None
        self.state = ModelState.RAW

    def bake(self):
        """
        Compute calibrated parameters for every k-mer.

        sd_lambda = sd_mean^3 / sd_stdv^2 is derived from the raw spread
        parameters and stored on the raw states. Levels get the affine
        transform (scale, shift) and var; spread gets scale_sd and var_sd,
        with the calibrated sd_stdv re-derived from sd_mean and sd_lambda.

        Raises:
            ModelNumericError: if any calibrated value is non-finite or a
                logged value is not positive. The model is left RAW.
        """
        self._invalidate()
        raw = self._states

        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            sd_lambda = raw['sd_mean'] ** 3 / raw['sd_stdv'] ** 2

            scaled = np.empty(len(raw), dtype=SCALED_STATE_DTYPE)
            scaled['level_mean'] = raw['level_mean'] * self.scale + self.shift
            scaled['level_stdv'] = raw['level_stdv'] * self.var

            scaled['sd_mean'] = raw['sd_mean'] * self.scale_sd
            scaled['sd_lambda'] = sd_lambda * self.var_sd
            scaled['sd_stdv'] = np.sqrt(scaled['sd_mean'] ** 3 / scaled['sd_lambda'])

            scaled['level_log_stdv'] = np.log(scaled['level_stdv'])
            scaled['sd_log_lambda'] = np.log(scaled['sd_lambda'])

        finite = np.ones(len(raw), dtype=bool)
        for field in SCALED_STATE_DTYPE.names:
            finite &= np.isfinite(scaled[field])

        if not finite.all():
            idx = int(np.flatnonzero(~finite)[0])
            raise ModelNumericError(
                f"Calibration of model '{self.name}' produced non-finite values "
                f"for {self.alphabet.unrank(idx, self.k)} "
                f"(scaling: {self.scaling_parameters()})"
            )

        raw['sd_lambda'] = sd_lambda
        self._scaled_states = scaled
        self.state = ModelState.CALIBRATED

    def set_scaling(self, **coefficients):
        """
        Replace calibration coefficients.

        Accepts any of shift, scale, drift, var, scale_sd, var_sd. A
        calibrated model is re-baked with the new values.
        """
        unknown = set(coefficients) - set(SCALING_FIELDS)
        if unknown:
            raise TypeError(f"Unknown scaling parameters: {sorted(unknown)}")

        was_scaled = self.is_scaled
        self._invalidate()
        for field, value in coefficients.items():
            self._scaling[field] = float(value)
        if was_scaled:
            self.bake()

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def update_states(self, new_states):
        """
        Replace all raw states, e.g. with freshly re-estimated parameters.

        Calibration coefficients are left as they are; there is no baseline
        offset argument. To move the baseline, use set_scaling(shift=...) or
        update_from_model(), which adds the source model's shift_offset.

        Args:
            new_states: Structured array or (n, 4) array-like indexed by rank;
                n must equal alphabet.count_kmers(k)
        """
        states = as_raw_states(new_states, self.alphabet.count_kmers(self.k))
        check_state_values(states, self.alphabet, self.k)
        self._replace_states(states)

    def update_from_model(self, other: 'PoreModel'):
        """
        Take k and raw states from another model.

        other.shift_offset is added to this model's shift, so a model trained
        against a different baseline can be swapped in without recomputing
        the rest of the calibration. Other coefficients are unchanged.
        """
        states = as_raw_states(other.states, self.alphabet.count_kmers(other.k))
        check_state_values(states, self.alphabet, other.k)
        self.k = other.k
        self._scaling['shift'] += other.shift_offset
        self._replace_states(states)

    def _replace_states(self, states: np.ndarray):
        was_scaled = self.is_scaled
        self._invalidate()
        self._states = states
        if was_scaled:
            self.bake()

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def log_probability(self, kmer_ranks, levels, stdvs=None) -> np.ndarray:
        """
        Per-event emission log-likelihood under the calibrated model.

        Args:
            kmer_ranks: Rank of the k-mer each event is matched to
            levels: Event mean levels
            stdvs: Optional event standard deviations; when given the
                inverse-Gaussian spread term is added

        Returns:
            Array of log-likelihoods, one per event
        """
        s = self.scaled_states[np.asarray(kmer_ranks, dtype=np.intp)]
        lp = log_normal_pdf(levels, s['level_mean'], s['level_stdv'], s['level_log_stdv'])
        if stdvs is not None:
            lp = lp + log_invgauss_pdf(stdvs, s['sd_mean'], s['sd_lambda'], s['sd_log_lambda'])
        return lp

    def to_dataframe(self, scaled: bool = False):
        """
        Tabulate raw (default) or calibrated states with their k-mers.

        Returns:
            pandas DataFrame indexed by rank with a 'kmer' column
        """
        table = self.scaled_states if scaled else self._states
        df = pd.DataFrame({field: table[field] for field in table.dtype.names})
        df.insert(0, 'kmer', self.alphabet.kmer_list(self.k))
        df.index.name = 'rank'
        return df

    def __repr__(self) -> str:
        return (f"PoreModel(name={self.name!r}, k={self.k}, "
                f"alphabet={self.alphabet.name!r}, state={self.state.value})")

    def __len__(self) -> int:
        return len(self._states)
