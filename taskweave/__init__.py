"""
Taskweave - hierarchical task decomposition for software projects.

Turns a validated project definition into a dependency-ordered graph of
primitive implementation tasks and checks it against the project's
mandatory components.
"""

__version__ = "0.1.0"
__author__ = "Taskweave Team"

from taskweave.core.planner import Planner

__all__ = ["Planner", "__version__"]
