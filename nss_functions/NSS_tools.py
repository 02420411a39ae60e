"""
Support functions for BRISQUE.py
"""
# Importing Libraries
import logging

import numpy as np
import scipy.ndimage
import cv2
from scipy.special import gamma
from numba import jit

from nss_functions.errors import InvalidInput

logger = logging.getLogger(__name__)

# Smallest side length any scale may have (7x7 local neighborhood)
MIN_SIZE = 7

# Pixel offsets (row, col) of the pairwise products: H, V, D1, D2
PAIRWISE_SHIFTS = ((0, 1), (1, 0), (1, 1), (-1, 1))


# Precompuations
# Candidate shape parameters: 0.2, then +0.001 accumulated in single precision while below 10
_steps = np.full(10000, 0.001, dtype=np.float32)
_steps[0] = 0.2
gamma_range = np.cumsum(_steps, dtype=np.float32)
gamma_range = gamma_range[gamma_range < 10].astype(np.float64)
a = gamma(2.0/gamma_range)
a *= a
b = gamma(1.0/gamma_range)
c = gamma(3.0/gamma_range)
precomputed_gammas = a/(b*c)

# Scan starts from a difference of 1e10 with a previous gamma of 0
_scan_gammas = np.concatenate(([0.0], gamma_range))


def gen_gauss_window(
	lw:int,
	sigma:float
):
	"""
	Generate a Gaussian Window with zero mean and given sigma
	Args:
		lw (int): (2lw + 1) will be the length of window.
		sigma (float): Standard Deviation of Gaussian Distribution
	"""
	# Variance
	var = np.square(np.float64(sigma))

	# Weights
	lw = int(lw)
	weights = np.zeros((2 * lw + 1))
	weights[lw] = 1.0

	# Sum for Normalization
	sum = 1.0

	# Gaussian Distribution
	for ii in range(1, lw + 1):
		tmp = np.exp(-0.5 * np.float64(ii * ii) / var)
		weights[lw + ii] = tmp
		weights[lw - ii] = tmp
		sum += 2.0 * tmp

	# Normalization
	weights = weights/sum

	return weights


def to_grayscale(
	img:np.ndarray,
	color_order:str='BGR'
):
	"""
	Reduce an image to a single channel scaled to [0, 1]
	Args:
		img (np.ndarray): (h, w) or (h, w, channels) image. Integer samples are scaled by the
			maximum of their dtype, float samples are taken as already being in [0, 1].
		color_order (str): Channel order of colour images, 'BGR' or 'RGB'.
	"""
	if color_order not in ('BGR', 'RGB'):
		raise ValueError(f"color_order should be 'BGR' or 'RGB', got {color_order!r}")

	img = np.asarray(img)
	if img.ndim not in (2, 3):
		raise InvalidInput(f"Image should be 2D or 3D, got shape {img.shape}")
	if img.size == 0:
		raise InvalidInput(f"Image has zero area, got shape {img.shape}")

	# Sample Range
	scale = 1.0
	if np.issubdtype(img.dtype, np.integer):
		scale = float(np.iinfo(img.dtype).max)
	if img.dtype not in (np.uint8, np.uint16, np.float32):
		# cvtColor only works on 8-bit, 16-bit and float32 samples
		img = img.astype(np.float32) / np.float32(scale)
		scale = 1.0

	# Luma
	if img.ndim == 3:
		if img.shape[2] >= 3:
			code = cv2.COLOR_BGR2GRAY if color_order == 'BGR' else cv2.COLOR_RGB2GRAY
			img = cv2.cvtColor(np.ascontiguousarray(img[:, :, :3]), code)
		else:
			# Gray + alpha: the second channel carries no luma
			img = img[:, :, 0]

	gray = img.astype(np.float64) / scale
	return np.clip(gray, 0.0, 1.0)


def scale_dimensions(
	h:int,
	w:int,
	scale:int
):
	"""
	(height, width) of the working buffer at scale index `scale` (1 = original resolution)
	"""
	factor = 2 ** (scale - 1)
	return h // factor, w // factor


def check_scale_sizes(
	shape:tuple,
	num_scales:int
):
	"""
	Fail before any filtering if some scale is smaller than the 7x7 neighborhood
	"""
	h, w = shape[:2]
	for scale in range(1, num_scales + 1):
		sh, sw = scale_dimensions(h, w, scale)
		if sh < MIN_SIZE or sw < MIN_SIZE:
			raise InvalidInput(
				f"Image of size {w}x{h} is {sw}x{sh} at scale {scale}, "
				f"needs at least {MIN_SIZE}x{MIN_SIZE}"
			)


def resize_to_scale(
	img:np.ndarray,
	scale:int
):
	"""
	Bicubic resize of a [0, 1] grayscale image to scale index `scale`, clipped back to [0, 1].
	Scale 1 still goes through the interpolation.
	"""
	h, w = scale_dimensions(img.shape[0], img.shape[1], scale)
	if h < MIN_SIZE or w < MIN_SIZE:
		raise InvalidInput(f"Scale {scale} is {w}x{h}, needs at least {MIN_SIZE}x{MIN_SIZE}")

	scaled = cv2.resize(img, (w, h), interpolation=cv2.INTER_CUBIC)
	return np.clip(scaled, 0.0, 1.0)


def compute_image_mscn_transform(
	image:np.ndarray,
	C:float=1.0/255,
	avg_window:np.ndarray=None,
	extend_mode='mirror'
):
	"""
	Computing MSCN coefficients of an Image
	Args:
		(image): 2D Image
		C (float): Constant added to the local deviation in the denominator.
		avg_window (np.array): Window used as filter while MSCN calculation.
		extend_mode (str): Mode while filtering image.
	"""
	# Assertions
	assert len(np.shape(image)) == 2, "Image should be 2D"

	# Averaging Window
	if avg_window is None:
		avg_window = gen_gauss_window(3, 1.166)

	h, w = image.shape[0], image.shape[1]
	mu_image = np.zeros((h, w), dtype=np.float64)
	var_image = np.zeros((h, w), dtype=np.float64)
	image = np.asarray(image, dtype=np.float64)

	# Calculating Mean
	scipy.ndimage.correlate1d(image, avg_window, 0, mu_image, mode=extend_mode)
	scipy.ndimage.correlate1d(mu_image, avg_window, 1, mu_image, mode=extend_mode)

	# Calculating Variance (Var(X) = E[X^2] - E[X]^2)
	scipy.ndimage.correlate1d(image**2, avg_window, 0, var_image, mode=extend_mode)
	scipy.ndimage.correlate1d(var_image, avg_window, 1, var_image, mode=extend_mode)
	var_image = np.sqrt(np.maximum(var_image - mu_image**2, 0.0))

	return (image - mu_image)/(var_image + C), var_image, mu_image


@jit(nopython=True, nogil=True)
def _aggd_moments(vec):
	# Sequential sums, zeros count on neither side
	poscount = 0
	negcount = 0
	possqsum = 0.0
	negsqsum = 0.0
	abssum = 0.0
	for pt in vec:
		if pt > 0:
			poscount += 1
			possqsum += pt * pt
			abssum += pt
		elif pt < 0:
			negcount += 1
			negsqsum += pt * pt
			abssum -= pt

	return poscount, negcount, possqsum, negsqsum, abssum


def estimate_shape_parameter(
	rhat_norm:float
):
	"""
	Scan the candidate gammas upwards from 0.2 and stop at the first one whose
	|r(gamma) - rhat_norm| is larger than the previous candidate's.
	A NaN target never stops the scan, so the last candidate is returned.
	"""
	diff = np.concatenate(([1e10], np.abs(precomputed_gammas - rhat_norm)))
	rises = np.flatnonzero(diff[1:] > diff[:-1])
	pos = rises[0] if len(rises) else len(diff) - 1

	return float(_scan_gammas[pos])


def estimate_aggd_features(
	vec:np.ndarray
):
	"""
	Estimate AGGD parameters using moment matching
	Args:
		vec (np.ndarray): Coefficient field of any shape.
	Returns:
		(alpha, left_sigma, right_sigma). Fields without negative (or positive) values
		give NaN scales, which propagate into every derived value.
	"""
	# Flattening Vector
	vec = np.ascontiguousarray(vec, dtype=np.float64).ravel()
	poscount, negcount, possqsum, negsqsum, abssum = _aggd_moments(vec)

	with np.errstate(divide='ignore', invalid='ignore'):
		# Left and Right Deviations
		left_sigma = np.sqrt(np.float64(negsqsum) / negcount)
		right_sigma = np.sqrt(np.float64(possqsum) / poscount)

		# Gamma_hat
		gamma_hat = left_sigma / right_sigma

		# Solving Gamma-hat Norm
		total = np.float64(vec.size)
		r_hat = (abssum / total)**2 / ((negsqsum + possqsum) / total)
		rhat_norm = r_hat * ((gamma_hat**3 + 1)*(gamma_hat + 1)) / (gamma_hat**2 + 1)**2

	alpha = estimate_shape_parameter(rhat_norm)

	return alpha, float(left_sigma), float(right_sigma)


def aggd_mean_parameter(
	alpha:float,
	left_sigma:float,
	right_sigma:float
):
	"""
	Mean of the fitted AGGD
	"""
	with np.errstate(divide='ignore', invalid='ignore'):
		alpha = np.float64(alpha)
		gam1 = gamma(1.0/alpha)
		gam2 = gamma(2.0/alpha)
		gam3 = gamma(3.0/alpha)

		constant = np.sqrt(gam1) / np.sqrt(gam3)
		return float((right_sigma - left_sigma) * (gam2/gam1) * constant)


def _overlap(
	n:int,
	shift:int
):
	# Destination and source spans along one axis for out[i] = in[i + shift]
	return slice(max(0, -shift), min(n, n - shift)), slice(max(0, shift), min(n, n + shift))


def shift_image(
	img:np.ndarray,
	row_shift:int,
	col_shift:int
):
	"""
	out[i, j] = img[i + row_shift, j + col_shift], 0 where the offset falls outside the image.
	The output keeps the input's shape.
	"""
	h, w = img.shape
	shifted = np.zeros_like(img)
	dst_rows, src_rows = _overlap(h, row_shift)
	dst_cols, src_cols = _overlap(w, col_shift)
	shifted[dst_rows, dst_cols] = img[src_rows, src_cols]

	return shifted


def paired_product(new_im):
	shift1 = shift_image(new_im, *PAIRWISE_SHIFTS[0])
	shift2 = shift_image(new_im, *PAIRWISE_SHIFTS[1])
	shift3 = shift_image(new_im, *PAIRWISE_SHIFTS[2])
	shift4 = shift_image(new_im, *PAIRWISE_SHIFTS[3])

	H_img = shift1 * new_im
	V_img = shift2 * new_im
	D1_img = shift3 * new_im
	D2_img = shift4 * new_im

	return (H_img, V_img, D1_img, D2_img)


def second_order_statistical_features(
	mscn:np.ndarray,
	executor=None
):
	"""
	Second Order statistical features
	Args:
		mscn (np.array): MSCN coefficents
		executor: Optional concurrent.futures executor to fit the four orientations on.
	"""
	# Paired Product
	pps = paired_product(mscn)

	# Fitting AGGD to paired products, in (H, V, D1, D2) order
	mapper = map if executor is None else executor.map
	fits = list(mapper(estimate_aggd_features, pps))

	features = []
	for alpha, bl, br in fits:
		N = aggd_mean_parameter(alpha, bl, br)
		features.extend([alpha, N, bl**2, br**2])

	return np.array(features)


def extract_subband_features(
	mscn:np.ndarray,
	executor=None
):
	"""
	Extracting the 18 features of one scale
	Args:
		mscn (np.array): MSCN coefficents
		executor: Optional executor for the pairwise-product fits.
	"""
	# Fitting AGGD to MSCN
	alpha_m, bl, br = estimate_aggd_features(mscn)
	sigma = (bl**2 + br**2)/2.0
	logger.debug("MSCN fit: alpha=%.3f left=%.6f right=%.6f", alpha_m, bl, br)

	# Pairwise Product
	pp_features = second_order_statistical_features(mscn, executor)

	return np.hstack((np.array([alpha_m, sigma]), pp_features))
