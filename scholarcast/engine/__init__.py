# scholarcast/engine/__init__.py
from .eligibility import EligibilityCheck, EligibilityResult, evaluate
from .features import extract_features
from .feature_schema import FEATURE_NAMES
