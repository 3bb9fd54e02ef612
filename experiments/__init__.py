"""
Experiment scripts.

Each experiment answers one specific question:
- model_comparison: Which model type estimates the outcome best under resampling?
"""
