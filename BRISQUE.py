"""
BRISQUE
"""
# Importing Libraries
import logging
import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np

import nss_functions.NSS_tools as NSS_tools
import nss_functions.svm_tools as svm_tools
from nss_functions.errors import InvalidInput

logger = logging.getLogger(__name__)

# Original resolution and half resolution
NUM_SCALES = 2
NUM_FEATURES = 36


def compute_features(
	img:np.ndarray,
	C:float=1.0/255,
	avg_window:np.ndarray=None,
	color_order:str='BGR',
	executor=None
):
	"""
	Computing the 36 BRISQUE features of one image
	Args:
		img (np.ndarray): (h, w) or (h, w, channels) image
		C (float): Constant added to the local deviation in the MSCN denominator.
		avg_window (np.array): 1D window for the separable local mean. (Default: 7 taps, sigma 1.166)
		color_order (str): 'BGR' or 'RGB' for colour images.
		executor: Optional executor for the orientation fits of each scale.
	Returns:
		np.ndarray of 36 features: for each scale, [alpha, sigma^2] of the MSCN fit followed by
		[alpha, mean, left_sigma^2, right_sigma^2] for the H, V, D1, D2 pairwise products.
	"""
	gray = NSS_tools.to_grayscale(img, color_order)
	NSS_tools.check_scale_sizes(gray.shape, NUM_SCALES)

	features = []
	for scale in range(1, NUM_SCALES + 1):
		# Resized Image
		imdist_scaled = NSS_tools.resize_to_scale(gray, scale)
		logger.debug("Scale %d: %dx%d", scale, imdist_scaled.shape[1], imdist_scaled.shape[0])

		# MSCN
		mscn, _, _ = NSS_tools.compute_image_mscn_transform(imdist_scaled, C, avg_window)

		# Scale Features
		features.append(NSS_tools.extract_subband_features(mscn, executor))

	features = np.concatenate(features)
	if np.isnan(features).any():
		logger.warning(
			"Feature vector has %d NaN values; some coefficient field has no positive or no negative values",
			int(np.isnan(features).sum())
		)

	return features


class BRISQUE:
	def __init__(self,
		model=None,
		range_data=None,
		C:float=1.0/255,
		avg_window:np.ndarray=None,
		color_order:str='BGR',
		max_workers:int=None
	):
		"""
		Parameters for BRISQUE
		Args:
			model: Path to a libsvm model file, or an object with predict(features) -> float.
				(Default: brisque_allmodel.dat in $BRISQUE_DATA_DIR)
			range_data: Path to a range file, or a svm_tools.RangeData.
				(Default: brisque_allrange.dat in $BRISQUE_DATA_DIR)
			C (float): Constant added to the local deviation in the MSCN denominator.
			avg_window (np.array): 1D window for the separable local mean.
			color_order (str): 'BGR' or 'RGB' for colour images.
			max_workers (int): Threads for the orientation fits. None or 1 fits serially.
		"""
		if color_order not in ('BGR', 'RGB'):
			raise ValueError(f"color_order should be 'BGR' or 'RGB', got {color_order!r}")

		self.C = C
		self.avg_window = avg_window
		self.color_order = color_order
		self.max_workers = max_workers

		# Resolving both paths before loading either
		model_path = range_path = None
		if model is None or isinstance(model, (str, os.PathLike)):
			model_path = svm_tools.resolve_data_path(model, svm_tools.DEFAULT_MODEL_FILE)
		if range_data is None or isinstance(range_data, (str, os.PathLike)):
			range_path = svm_tools.resolve_data_path(range_data, svm_tools.DEFAULT_RANGE_FILE)

		# Regression Model
		self.model = svm_tools.SVMRegressor.load(model_path) if model_path is not None else model

		# Range Data
		self.range_data = svm_tools.RangeData.load(range_path) if range_path is not None else range_data


	def compute_features(self, img:np.ndarray):
		if self.max_workers is not None and self.max_workers > 1:
			with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
				return compute_features(img, self.C, self.avg_window, self.color_order, pool)

		return compute_features(img, self.C, self.avg_window, self.color_order)


	def compute_score(self, img:np.ndarray):
		"""
		Quality score of a single frame (higher means more distortion)
		"""
		features = self.compute_features(img)

		# Rescaling to [-1, 1]
		scaled_features = self.range_data.scale(features)

		return float(self.model.predict(scaled_features))


	def compute(self, imgs):
		"""
		Quality score of one frame, or the mean score of a sequence of frames
		Args:
			imgs: A single (h, w) or (h, w, channels) image, a (frames, h, w, channels) stack,
				or a list/tuple of image arrays.
		"""
		if isinstance(imgs, np.ndarray):
			imgs = list(imgs) if imgs.ndim == 4 else [imgs]
		imgs = list(imgs)
		if len(imgs) == 0:
			raise InvalidInput("No images to score")

		scores = [self.compute_score(img) for img in imgs]
		if len(scores) == 1:
			return scores[0]

		return float(np.mean(scores))


def compute_quality(
	imgs,
	model=None,
	range_data=None,
	**kwargs
):
	"""
	One-shot scoring: builds a BRISQUE with `model`, `range_data` and `kwargs` and computes `imgs`
	"""
	return BRISQUE(model, range_data, **kwargs).compute(imgs)
