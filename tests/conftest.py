import cv2
import numpy as np
import pytest
from libsvm import svmutil

from nss_functions import svm_tools


def make_natural_image(h, w, seed=0):
	"""Smoothed noise with a gradient, uint8 in [0, 255]"""
	rng = np.random.default_rng(seed)
	noise = rng.uniform(0, 255, (h, w)).astype(np.float32)
	smooth = cv2.GaussianBlur(noise, (0, 0), 1.5)
	ramp = np.linspace(0, 60, w, dtype=np.float32)[None, :]
	img = smooth - smooth.min() + ramp
	img = 255 * img / img.max()
	return np.clip(np.round(img), 0, 255).astype(np.uint8)


def write_range_file(path, range_min, range_max):
	lines = ["x", "-1 1"]
	for i, (lo, hi) in enumerate(zip(range_min, range_max), start=1):
		lines.append(f"{i} {lo} {hi}")
	path.write_text("\n".join(lines) + "\n")
	return path


@pytest.fixture
def gray_image():
	return make_natural_image(48, 64)


@pytest.fixture
def color_image():
	b = make_natural_image(40, 56, seed=1)
	g = make_natural_image(40, 56, seed=2)
	r = make_natural_image(40, 56, seed=3)
	return np.dstack([b, g, r])


@pytest.fixture
def range_file(tmp_path):
	return write_range_file(
		tmp_path / svm_tools.DEFAULT_RANGE_FILE, svm_tools.LIVE_RANGE_MIN, svm_tools.LIVE_RANGE_MAX
	)


@pytest.fixture
def model_file(tmp_path):
	rng = np.random.default_rng(7)
	x = rng.uniform(-1, 1, (40, 36)).tolist()
	y = rng.uniform(0, 100, 40).tolist()
	model = svmutil.svm_train(y, x, '-s 3 -t 2 -q')
	path = tmp_path / svm_tools.DEFAULT_MODEL_FILE
	svmutil.svm_save_model(str(path), model)
	return path


class SumModel:
	"""Stand-in regression model: sum of the finite scaled features"""

	def predict(self, features):
		features = np.asarray(features)
		return float(np.sum(features[np.isfinite(features)]))


@pytest.fixture
def sum_model():
	return SumModel()
