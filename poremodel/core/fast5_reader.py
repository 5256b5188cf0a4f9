"""
Minimal fast5 reader for per-read pore models.

Only the three accessors needed to build a PoreModel are provided:
- get_model(strand): the stored k-mer table
- get_model_parameters(strand): drift/scale/scale_sd/shift/var/var_sd
- get_model_file(strand): the model file path recorded by the basecaller

Layout (ONT basecalled fast5):
    /Analyses/<group>/BaseCalled_<template|complement>/Model   (table + scaling attrs)
    /Analyses/<group>/Summary/basecall_1d_<template|complement> (model_file attr)
"""

from typing import Dict, List, NamedTuple

import h5py
import numpy as np

from poremodel.core.errors import Fast5FormatError

DEFAULT_BASECALL_GROUP = 'Basecall_2D_000'

# Installation prefix of ONT model files on basecalling machines
DEFAULT_KNOWN_PREFIX = '/opt/chimaera/model/'

STRAND_NAMES = ('template', 'complement')

MODEL_PARAMETER_NAMES = ('drift', 'scale', 'scale_sd', 'shift', 'var', 'var_sd')


class ModelEntry(NamedTuple):
    kmer: str
    level_mean: float
    level_stdv: float
    sd_mean: float
    sd_stdv: float


def _to_str(value) -> str:
    if isinstance(value, np.ndarray):
        value = value.item() if value.shape == () else value[0]
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return str(value)


class Fast5Reader:
    """
    Read-only access to the model stored in a basecalled fast5 file.

    Usable as a context manager:

        with Fast5Reader(path) as reader:
            model = PoreModel.from_fast5(reader, strand=0)
    """

    def __init__(self, filepath: str, basecall_group: str = DEFAULT_BASECALL_GROUP):
        self.filepath = filepath
        self.basecall_group = basecall_group
        self._file = h5py.File(filepath, 'r')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    @staticmethod
    def strand_name(strand: int) -> str:
        try:
            return STRAND_NAMES[strand]
        except (IndexError, TypeError):
            raise ValueError(f"Strand must be 0 (template) or 1 (complement), got {strand!r}") from None

    def model_path(self, strand: int) -> str:
        return f"/Analyses/{self.basecall_group}/BaseCalled_{self.strand_name(strand)}/Model"

    def summary_path(self, strand: int) -> str:
        return f"/Analyses/{self.basecall_group}/Summary/basecall_1d_{self.strand_name(strand)}"

    def has_model(self, strand: int) -> bool:
        return self.model_path(strand) in self._file

    def _get(self, path: str):
        if self._file is None:
            raise ValueError(f"Fast5 file {self.filepath} is closed")
        try:
            return self._file[path]
        except KeyError:
            raise Fast5FormatError(f"{self.filepath}: missing {path}") from None

    def get_model(self, strand: int) -> List[ModelEntry]:
        """Return the stored model table for a strand, in file order."""
        dataset = self._get(self.model_path(strand))
        table = dataset[()]

        names = table.dtype.names or ()
        missing = [f for f in ModelEntry._fields if f not in names]
        if missing:
            raise Fast5FormatError(
                f"{self.filepath}: model table {dataset.name} lacks fields {missing}"
            )

        return [
            ModelEntry(
                kmer=_to_str(row['kmer']),
                level_mean=float(row['level_mean']),
                level_stdv=float(row['level_stdv']),
                sd_mean=float(row['sd_mean']),
                sd_stdv=float(row['sd_stdv']),
            )
            for row in table
        ]

    def get_model_parameters(self, strand: int) -> Dict[str, float]:
        """Return the per-read scaling coefficients for a strand."""
        attrs = self._get(self.model_path(strand)).attrs
        missing = [p for p in MODEL_PARAMETER_NAMES if p not in attrs]
        if missing:
            raise Fast5FormatError(
                f"{self.filepath}: model for strand {strand} lacks scaling attributes {missing}"
            )
        return {p: float(attrs[p]) for p in MODEL_PARAMETER_NAMES}

    def get_model_file(self, strand: int) -> str:
        """Return the path of the model file the basecaller used for a strand."""
        attrs = self._get(self.summary_path(strand)).attrs
        if 'model_file' not in attrs:
            raise Fast5FormatError(
                f"{self.filepath}: {self.summary_path(strand)} has no model_file attribute"
            )
        return _to_str(attrs['model_file'])
