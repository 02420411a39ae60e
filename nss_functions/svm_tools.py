"""
Range data and libsvm regression model consumed by BRISQUE.py
"""
# Importing Libraries
import logging
import os
from ctypes import c_double

import numpy as np
from libsvm import svmutil

from nss_functions.errors import ObjectNotFound, ParseError

logger = logging.getLogger(__name__)

RANGE_SIZE = 36

# Directory searched for the default model and range files
DATA_DIR_ENV = 'BRISQUE_DATA_DIR'
DEFAULT_MODEL_FILE = 'brisque_allmodel.dat'
DEFAULT_RANGE_FILE = 'brisque_allrange.dat'

# Feature ranges of the model trained on the LIVE database
LIVE_RANGE_MIN = [
	0.336999, 0.019667, 0.230000, -0.125959, 0.000167, 0.000616, 0.231000, -0.125873, 0.000165,
	0.000600, 0.241000, -0.128814, 0.000179, 0.000386, 0.243000, -0.133080, 0.000182, 0.000421,
	0.436998, 0.016929, 0.247000, -0.200231, 0.000104, 0.000834, 0.257000, -0.200017, 0.000112,
	0.000876, 0.257000, -0.155072, 0.000112, 0.000356, 0.258000, -0.154374, 0.000117, 0.000351,
]
LIVE_RANGE_MAX = [
	9.999411, 0.807472, 1.644021, 0.202917, 0.712384, 0.468672, 1.644021, 0.169548, 0.713132,
	0.467896, 1.553016, 0.101368, 0.687324, 0.533087, 1.554016, 0.101000, 0.689177, 0.533133,
	3.639918, 0.800955, 1.096995, 0.175286, 0.755547, 0.399270, 1.095995, 0.155928, 0.751488,
	0.402398, 1.041992, 0.093209, 0.623516, 0.532925, 1.042992, 0.093714, 0.621958, 0.534484,
]


def resolve_data_path(
	file_path,
	default_name:str
):
	"""
	Return `file_path`, or `default_name` inside $BRISQUE_DATA_DIR when no path is given
	"""
	if file_path:
		return os.fspath(file_path)

	data_dir = os.environ.get(DATA_DIR_ENV, '')
	if not data_dir:
		raise ObjectNotFound(f"No path given for {default_name} and {DATA_DIR_ENV} is not set")

	return os.path.join(data_dir, default_name)


class RangeData:
	def __init__(self,
		range_min,
		range_max
	):
		"""
		Per-feature (min, max) used to rescale features to [-1, 1]
		Args:
			range_min (array-like): 36 minimums
			range_max (array-like): 36 maximums
		"""
		self.range_min = np.asarray(range_min, dtype=np.float64)
		self.range_max = np.asarray(range_max, dtype=np.float64)
		if self.range_min.shape != (RANGE_SIZE,) or self.range_max.shape != (RANGE_SIZE,):
			raise ValueError(
				f"Range data needs {RANGE_SIZE} minimums and maximums, "
				f"got {self.range_min.shape} and {self.range_max.shape}"
			)


	@classmethod
	def load(cls, file_path):
		"""
		Read a range file: two header lines, then 36 lines of `index min max`
		"""
		try:
			table = np.loadtxt(file_path, skiprows=2, max_rows=RANGE_SIZE, ndmin=2)
		except (OSError, ValueError) as e:
			raise ParseError(f"Invalid range data file {file_path}: {e}") from e

		if table.shape != (RANGE_SIZE, 3):
			raise ParseError(
				f"Invalid range data file {file_path}: expected {RANGE_SIZE} rows of 3 values, "
				f"got shape {table.shape}"
			)

		logger.info("Loaded range data from %s", file_path)
		return cls(table[:, 1], table[:, 2])


	@classmethod
	def live(cls):
		return cls(LIVE_RANGE_MIN, LIVE_RANGE_MAX)


	def scale(self, features:np.ndarray):
		features = np.asarray(features, dtype=np.float64)
		return -1 + 2.0 * (features - self.range_min) / (self.range_max - self.range_min)


class SVMRegressor:
	def __init__(self, model):
		"""
		Wraps a libsvm model; any object with the same `predict` can stand in for it
		Args:
			model (svmutil.svm_model): Loaded libsvm model
		"""
		self.model = model


	@classmethod
	def load(cls, file_path):
		file_path = os.fspath(file_path)
		if not os.path.isfile(file_path):
			raise ParseError(f"Error loading BRISQUE model file {file_path}: no such file")

		model = svmutil.svm_load_model(file_path)
		if not model:
			raise ParseError(f"Error loading BRISQUE model file {file_path}")

		logger.info("Loaded libsvm model from %s", file_path)
		return cls(model)


	def predict(self, features:np.ndarray):
		"""
		Predict the quality score of one scaled feature vector (feature indices start at 1)
		"""
		x, _ = svmutil.gen_svm_nodearray(
			[float(v) for v in features],
			isKernel=(self.model.param.kernel_type == svmutil.kernel_names.PRECOMPUTED)
		)
		prob_estimates = (c_double * max(self.model.get_nr_class(), 1))()

		return float(svmutil.libsvm.svm_predict_probability(self.model, x, prob_estimates))
