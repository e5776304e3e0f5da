"""Weighted pose averaging and fixed-eye camera calibration."""

__version__ = "0.1.0"
__all__ = ["geometry", "pose_average", "calibration", "listener", "broadcast"]