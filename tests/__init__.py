"""Test package for the pinball flipper recall trainer.

Core modules (grid, ordering, hidden truth, scoring, session controller,
presets, persistence) are tested directly; the pygame UI is exercised
headlessly with SDL's dummy video driver. Run ``pytest`` from the project
root.
"""
