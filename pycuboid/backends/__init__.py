"""
Host-side compute backends for PyCuboid.
"""

from pycuboid.backends.cpu import sequential_cuboid_area

__all__ = [
    "sequential_cuboid_area",
]
