"""
Shared pytest fixtures for poremodel tests.
"""
import pytest
import numpy as np
import h5py

from poremodel.core.alphabet import DNA_ALPHABET


K1_MODEL_TEXT = """#model_name k1_test
#shift_offset 0.0
kmer\tlevel_mean\tlevel_stdv\tsd_mean\tsd_stdv
A 10 1 2 1
C 11 1 2 1
G 12 1 2 1
T 13 1 2 1
"""


def make_k2_rows():
    """Deterministic, distinct parameters for all 16 DNA 2-mers, by rank."""
    rows = []
    for rank, kmer in enumerate(DNA_ALPHABET.kmer_list(2)):
        rows.append((kmer, 60.0 + 2.5 * rank, 1.0 + 0.1 * rank, 1.5 + 0.05 * rank, 0.4 + 0.02 * rank))
    return rows


@pytest.fixture
def write_model(tmp_path):
    """Factory writing model text to a file and returning its path."""
    def _write(text, name='model.txt'):
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return _write


@pytest.fixture
def k1_model_path(write_model):
    return write_model(K1_MODEL_TEXT, 'k1.model')


@pytest.fixture
def k2_rows():
    return make_k2_rows()


@pytest.fixture
def k2_model_path(write_model, k2_rows):
    """k=2 model with rows in reverse rank order and a non-zero shift offset."""
    lines = [
        "#model_name r9_k2_test",
        "#shift_offset 1.5",
        "# trained on synthetic data",
        "kmer\tlevel_mean\tlevel_stdv\tsd_mean\tsd_stdv\tweight",
    ]
    for kmer, lm, ls, sm, ss in reversed(k2_rows):
        lines.append(f"{kmer}\t{lm}\t{ls}\t{sm}\t{ss}\t100.0")
    return write_model('\n'.join(lines) + '\n', 'k2.model')


FAST5_SCALING = {
    'drift': 0.001,
    'scale': 1.05,
    'scale_sd': 0.9,
    'shift': 4.0,
    'var': 1.2,
    'var_sd': 1.1,
}

FAST5_MODEL_FILE = '/opt/chimaera/model/r7.3_e6_70bps_6mer/template_median68pA.model'


def write_fast5(path, rows, strands=('template',), group='Basecall_2D_000',
                scaling=None, model_file=FAST5_MODEL_FILE):
    """Write a minimal basecalled fast5 holding a model table per strand."""
    scaling = FAST5_SCALING if scaling is None else scaling
    k = len(rows[0][0])
    dtype = np.dtype([
        ('kmer', f'S{k}'),
        ('level_mean', 'f8'),
        ('level_stdv', 'f8'),
        ('sd_mean', 'f8'),
        ('sd_stdv', 'f8'),
        ('weight', 'f8'),
    ])
    table = np.array([(kmer.encode(), lm, ls, sm, ss, 1.0) for kmer, lm, ls, sm, ss in rows],
                     dtype=dtype)

    with h5py.File(path, 'w') as f:
        for strand in strands:
            ds = f.create_dataset(f'/Analyses/{group}/BaseCalled_{strand}/Model', data=table)
            for key, value in scaling.items():
                ds.attrs[key] = value
            summary = f.require_group(f'/Analyses/{group}/Summary/basecall_1d_{strand}')
            summary.attrs['model_file'] = model_file
    return str(path)


@pytest.fixture
def fast5_path(tmp_path, k2_rows):
    """fast5 with template and complement k=2 models, rows in reverse order."""
    return write_fast5(tmp_path / 'read_001.fast5', list(reversed(k2_rows)),
                       strands=('template', 'complement'))
