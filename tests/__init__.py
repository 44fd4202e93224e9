"""Test package for Calculate and Conquer.

Core modules are exercised directly with seeded generators and a manual
clock. The pygame smoke tests run with SDL's dummy video driver so no real
window is opened. Run ``pytest`` from the project root.
"""
