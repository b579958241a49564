"""
Wiring of the power engine to concrete collaborators
"""

from .simulation import PowerSimulation, build_simulation

__all__ = ["PowerSimulation", "build_simulation"]
