"""
Annotator Engine - Interaction core for image annotation tools.

Keeps a shape collection in image space, maps pointer input through a
pan/zoom view, drives the box, point and polygon drawing tools, provides
snapshot undo/redo and snaps boxes to nearby image edges.
"""

__version__ = "1.0.0"
__author__ = "Annotator Engine Team"
