"""
Tests for poremodel.core.fast5_reader and building models from fast5 reads.
"""
import pytest
import numpy as np
import h5py

from poremodel.core.alphabet import DNA_ALPHABET
from poremodel.core.errors import Fast5FormatError, ModelCompletenessError
from poremodel.core.fast5_reader import Fast5Reader
from poremodel.core.model_io import load_model, load_model_from_fast5, save_model
from poremodel.core.pore_model import PoreModel, ModelState

from conftest import FAST5_SCALING, write_fast5


class TestFast5Reader:
    def test_get_model(self, fast5_path, k2_rows):
        with Fast5Reader(fast5_path) as reader:
            entries = reader.get_model(0)
        assert len(entries) == 16
        assert entries[0].kmer == 'TT'
        assert entries[-1].kmer == 'AA'
        assert entries[-1].level_mean == pytest.approx(k2_rows[0][1])

    def test_get_model_parameters(self, fast5_path):
        with Fast5Reader(fast5_path) as reader:
            params = reader.get_model_parameters(1)
        assert params == pytest.approx(FAST5_SCALING)

    def test_get_model_file(self, fast5_path):
        with Fast5Reader(fast5_path) as reader:
            assert reader.get_model_file(0).endswith('template_median68pA.model')

    def test_has_model(self, tmp_path, k2_rows):
        path = write_fast5(tmp_path / 'template_only.fast5', k2_rows)
        with Fast5Reader(path) as reader:
            assert reader.has_model(0)
            assert not reader.has_model(1)

    def test_missing_model(self, tmp_path, k2_rows):
        path = write_fast5(tmp_path / 'template_only.fast5', k2_rows)
        with Fast5Reader(path) as reader:
            with pytest.raises(Fast5FormatError, match="BaseCalled_complement"):
                reader.get_model(1)

    def test_missing_scaling_attribute(self, tmp_path, k2_rows):
        scaling = dict(FAST5_SCALING)
        del scaling['var_sd']
        path = write_fast5(tmp_path / 'noattr.fast5', k2_rows, scaling=scaling)
        with Fast5Reader(path) as reader:
            with pytest.raises(Fast5FormatError, match="var_sd"):
                reader.get_model_parameters(0)

    def test_custom_basecall_group(self, tmp_path, k2_rows):
        path = write_fast5(tmp_path / 'group.fast5', k2_rows, group='Basecall_1D_000')
        with Fast5Reader(path, basecall_group='Basecall_1D_000') as reader:
            assert len(reader.get_model(0)) == 16

    def test_invalid_strand(self, fast5_path):
        with Fast5Reader(fast5_path) as reader:
            with pytest.raises(ValueError):
                reader.get_model(2)

    def test_not_a_fast5(self, tmp_path):
        path = tmp_path / 'bad.fast5'
        path.write_text('not hdf5')
        with pytest.raises(OSError):
            Fast5Reader(str(path))


class TestModelFromFast5:
    def test_calibrated_on_load(self, fast5_path):
        with Fast5Reader(fast5_path) as reader:
            model = PoreModel.from_fast5(reader, 0)
        assert model.state is ModelState.CALIBRATED
        assert model.shift_offset == 0.0
        assert model.scaling_parameters() == pytest.approx(FAST5_SCALING)

    def test_states_by_rank(self, fast5_path, k2_rows):
        with Fast5Reader(fast5_path) as reader:
            model = load_model_from_fast5(reader, 0, DNA_ALPHABET)
        kmer, lm, ls, sm, ss = k2_rows[5]
        state = model.get_state(kmer)
        assert state['level_mean'] == pytest.approx(lm)
        assert state['sd_stdv'] == pytest.approx(ss)

        scaled = model.get_scaled_state(kmer)
        assert scaled['level_mean'] == pytest.approx(lm * FAST5_SCALING['scale'] + FAST5_SCALING['shift'])
        assert scaled['level_stdv'] == pytest.approx(ls * FAST5_SCALING['var'])
        assert scaled['sd_mean'] == pytest.approx(sm * FAST5_SCALING['scale_sd'])
        assert scaled['sd_lambda'] == pytest.approx(sm ** 3 / ss ** 2 * FAST5_SCALING['var_sd'])

    def test_name_shortened(self, fast5_path):
        with Fast5Reader(fast5_path) as reader:
            model = load_model_from_fast5(reader, 0)
        assert model.name == 'r7.3_e6_70bps_6mer_template_median68pA.model'
        assert model.model_filename == fast5_path

    def test_name_with_configured_prefix(self, tmp_path, k2_rows):
        path = write_fast5(tmp_path / 'r.fast5', k2_rows, model_file='/data/models/r9/t.model')
        with Fast5Reader(path) as reader:
            model = load_model_from_fast5(reader, 0, known_prefix='/data/models/')
        assert model.name == 'r9_t.model'

    def test_no_prefix_keeps_full_path(self, fast5_path):
        full = '_opt_chimaera_model_r7.3_e6_70bps_6mer_template_median68pA.model'
        with Fast5Reader(fast5_path) as reader:
            assert PoreModel.from_fast5(reader, 0, known_prefix=None).name == full
            assert load_model_from_fast5(reader, 0, known_prefix=None).name == full
            assert PoreModel.from_fast5(reader, 0).name == load_model_from_fast5(reader, 0).name

    def test_incomplete_table(self, tmp_path, k2_rows):
        path = write_fast5(tmp_path / 'short.fast5', k2_rows[:15])
        with Fast5Reader(path) as reader:
            with pytest.raises(ModelCompletenessError, match="15 entries"):
                load_model_from_fast5(reader, 0)

    def test_duplicate_in_table(self, tmp_path, k2_rows):
        rows = k2_rows[:15] + [k2_rows[0]]
        path = write_fast5(tmp_path / 'dup.fast5', rows)
        with Fast5Reader(path) as reader:
            with pytest.raises(ModelCompletenessError, match="duplicate"):
                load_model_from_fast5(reader, 0)

    def test_write_then_reload(self, fast5_path, tmp_path):
        with Fast5Reader(fast5_path) as reader:
            model = load_model_from_fast5(reader, 1)
        out = str(tmp_path / 'read.model')
        save_model(model, out)

        reloaded = load_model(out, verbose=False)
        assert reloaded.name == model.name
        assert not reloaded.is_scaled
        np.testing.assert_array_equal(reloaded.states['level_mean'], model.states['level_mean'])

    def test_custom_reader(self, k2_rows):
        """Any object with the three accessors can supply a model."""
        class StubReader:
            def get_model(self, strand):
                from poremodel.core.fast5_reader import ModelEntry
                return [ModelEntry(*row) for row in k2_rows]

            def get_model_parameters(self, strand):
                return dict(FAST5_SCALING, shift=0.0)

            def get_model_file(self, strand):
                return 'models/k2.model'

        model = load_model_from_fast5(StubReader(), 0)
        assert model.name == 'models_k2.model'
        assert model.model_filename == ''
        assert model.is_scaled
