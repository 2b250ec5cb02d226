"""
Breakout - walk-forward out-of-sample evaluation of a moving-average breakout rule.

Nothing here is allowed to peek at the future:
- Parameters are chosen on in-sample bars only
- Frozen parameters are applied to the following unseen bars
- Every price bar is counted exactly once across folds
"""

__version__ = "0.1.0"
__author__ = "Breakout Research Team"
