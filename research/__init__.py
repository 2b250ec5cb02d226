"""
Research and backtesting modules.

This layer is for:
- In-sample parameter optimization
- Out-of-sample return accounting
- Walk-forward validation

CRITICAL: Never judge a rule by its in-sample score.
"""
