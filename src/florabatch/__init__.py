"""
FloraBatch

Batch flower identification for folders of images using a remote vision model.
"""

__version__ = "0.1.0"
