"""
Cube Subdivision - curve-guided stochastic octree subdivision.

A closed cube is repeatedly split into 8 children near a guide curve and
thinned far from it, leaving a cloud of cells that follows the curve.

Usage:
    python src/run_all.py --curve data/curve.csv --loops 4 --seed 1
"""

__version__ = "1.0.0"
