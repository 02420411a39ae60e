import os

import numpy as np
import pytest
from libsvm import svmutil

from nss_functions import svm_tools
from nss_functions.errors import ObjectNotFound, ParseError

from conftest import write_range_file


def test_load_range_file(range_file):
	data = svm_tools.RangeData.load(range_file)
	np.testing.assert_allclose(data.range_min, svm_tools.LIVE_RANGE_MIN)
	np.testing.assert_allclose(data.range_max, svm_tools.LIVE_RANGE_MAX)


def test_load_range_file_ignores_trailing_lines(tmp_path):
	path = write_range_file(tmp_path / 'range.dat', np.zeros(36), np.arange(1, 37))
	with open(path, 'a') as f:
		f.write("trailing text\n")
	data = svm_tools.RangeData.load(path)
	np.testing.assert_array_equal(data.range_max, np.arange(1, 37))


def test_load_range_file_missing(tmp_path):
	with pytest.raises(ParseError):
		svm_tools.RangeData.load(tmp_path / 'nope.dat')


def test_load_range_file_malformed(tmp_path):
	path = tmp_path / 'range.dat'
	path.write_text("x\n-1 1\n1 0.1 abc\n")
	with pytest.raises(ParseError):
		svm_tools.RangeData.load(path)


def test_load_range_file_too_short(tmp_path):
	path = write_range_file(tmp_path / 'range.dat', np.zeros(10), np.ones(10))
	with pytest.raises(ParseError):
		svm_tools.RangeData.load(path)


def test_range_data_needs_36_entries():
	with pytest.raises(ValueError):
		svm_tools.RangeData(np.zeros(35), np.ones(35))


def test_scale_features():
	data = svm_tools.RangeData(np.zeros(36), np.full(36, 4.0))
	features = np.linspace(0, 4, 36)
	np.testing.assert_allclose(data.scale(features), -1 + 2 * features / 4)
	assert data.scale(np.zeros(36))[0] == -1
	assert data.scale(np.full(36, 4.0))[0] == 1


def test_live_range():
	data = svm_tools.RangeData.live()
	assert data.range_min.shape == (36,)
	assert data.range_min[0] == pytest.approx(0.336999)
	assert data.range_max[0] == pytest.approx(9.999411)
	assert np.all(data.range_max > data.range_min)


def test_resolve_data_path(tmp_path, monkeypatch):
	assert svm_tools.resolve_data_path(tmp_path / 'm.dat', 'x') == os.fspath(tmp_path / 'm.dat')

	monkeypatch.setenv(svm_tools.DATA_DIR_ENV, str(tmp_path))
	assert svm_tools.resolve_data_path(None, 'x.dat') == os.path.join(str(tmp_path), 'x.dat')

	monkeypatch.delenv(svm_tools.DATA_DIR_ENV)
	with pytest.raises(ObjectNotFound):
		svm_tools.resolve_data_path(None, 'x.dat')
	with pytest.raises(ParseError):
		svm_tools.resolve_data_path('', 'x.dat')


def test_load_model_missing(tmp_path):
	with pytest.raises(ParseError):
		svm_tools.SVMRegressor.load(tmp_path / 'nope.dat')


def test_load_model_malformed(tmp_path):
	path = tmp_path / 'model.dat'
	path.write_text("not a libsvm model\n")
	with pytest.raises(ParseError):
		svm_tools.SVMRegressor.load(path)


def test_predict_matches_svm_predict(model_file):
	regressor = svm_tools.SVMRegressor.load(model_file)
	features = np.random.default_rng(11).uniform(-1, 1, 36)

	score = regressor.predict(features)
	labels, _, _ = svmutil.svm_predict([0], [features.tolist()], regressor.model, '-q')

	assert isinstance(score, float)
	assert score == pytest.approx(labels[0])
	assert regressor.predict(features) == score


def test_predict_linear_kernel_model(tmp_path):
	rng = np.random.default_rng(13)
	x = rng.uniform(-1, 1, (30, 36)).tolist()
	y = rng.uniform(0, 100, 30).tolist()
	path = tmp_path / 'linear.dat'
	svmutil.svm_save_model(str(path), svmutil.svm_train(y, x, '-s 3 -t 0 -q'))

	regressor = svm_tools.SVMRegressor.load(path)
	assert regressor.model.param.kernel_type != svmutil.kernel_names.PRECOMPUTED

	features = rng.uniform(-1, 1, 36)
	labels, _, _ = svmutil.svm_predict([0], [features.tolist()], regressor.model, '-q')
	assert regressor.predict(features) == pytest.approx(labels[0])
