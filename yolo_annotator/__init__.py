"""
YOLO Annotator

Image annotation core for building YOLO training datasets: an annotation
store for boxes and point-prompted polygon segments, mask-to-polygon
extraction, letterbox geometry and a deterministic dataset export pipeline.
"""

__version__ = "0.1.0"
