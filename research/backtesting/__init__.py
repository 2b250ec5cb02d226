"""
Backtesting framework with walk-forward validation.

Key principles:
- NO full-dataset optimization (guaranteed overfitting)
- Non-overlapping, gap-free OOS windows
- Decisions see the current bar, returns come from the next one
"""
