"""
Engine-wide constants and defaults.
"""

# Integer powers of sums up to this exponent are expanded
MAX_EXPANSION_POWER = 10

# Function results this close to 0 or +-1 are snapped to the exact value
SNAP_TOLERANCE = 1e-14

# Coefficients smaller than this after combination count as zero
ZERO_TOLERANCE = 1e-12

# Fixed-point rounds for the simplifier
DEFAULT_MAX_DEPTH = 10

# Rounds for overlap_simplify
DEFAULT_OVERLAP_ITERATIONS = 5

# Recursion depth for the integration strategy engine
DEFAULT_INTEGRATION_DEPTH = 4

# Largest denominator accepted when reading a float as an exact rational
MAX_RATIONAL_DENOMINATOR = 10000

RESERVED_FUNCTIONS = frozenset([
    "sin", "cos", "tan", "log", "ln", "exp", "sqrt",
    "asin", "acos", "atan", "sinh", "cosh", "tanh", "abs",
])

RESERVED_CONSTANTS = frozenset(["e", "π", "pi", "i"])

# Constants with a real numeric value
MATH_CONSTANTS = frozenset(["e", "π", "pi"])

# Single letters read as function names when followed by parentheses
COMMON_FUNCTION_NAMES = frozenset(["f", "g", "h", "F", "G", "H"])

# Order used when guessing the variable of an expression
VARIABLE_PRIORITY = ("x", "y", "z", "t", "u", "v", "w")
