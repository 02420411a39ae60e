"""
Exceptions raised by the BRISQUE feature extractor and its collaborators
"""


class BRISQUEError(Exception):
	pass


class InvalidInput(BRISQUEError, ValueError):
	"""Image is empty or too small for the 7x7 neighborhood at some scale."""


class ParseError(BRISQUEError):
	"""Range or model file is missing or malformed."""


class ObjectNotFound(ParseError):
	"""Default data file could not be located."""
