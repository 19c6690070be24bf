"""Cut-offs and labels for interpreting a session's Cronbach's alpha."""

from typing import Literal

AlphaInterpretation = Literal[
    "excellent", "good", "acceptable", "questionable", "poor", "unacceptable"
]


# Lower bound of each interpretation band (George & Mallery); below "poor" is
# "unacceptable"
ALPHA_THRESHOLDS = {
    "excellent": 0.90,
    "good": 0.80,
    "acceptable": 0.70,
    "questionable": 0.60,
    "poor": 0.50,
}

# Minimum alpha for a session to be reported as internally consistent
TARGET_ALPHA_THRESHOLD = 0.70

# Alpha is undefined for fewer items than this
MIN_ITEMS_FOR_ALPHA = 2
