"""
Configuration & Constants
=========================
This module serves as the central registry for file locations and global
constants shared by the model, the controller and the viewer.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic strings (folder names, sentinels, the
   packed color feature name) scattered throughout the code.
2. Consistency: The writer, the cleanup routine and the file naming all
   agree on one prefix and one timestamp layout.

Exports:
    OUTPUT_FOLDER (str): Folder where serialized clouds are written.
    FILE_PREFIX (str): Prefix of every serialized cloud file.
    KEEP_VIEWPORT (int): Viewport sentinel meaning "keep the current one".
    PICK_EPSILON (float): Squared distance under which a pick is a match.
"""
# Serialized point-record files
OUTPUT_FOLDER: str = "VisualizerData"
FILE_PREFIX: str = "visualizer."
FILE_EXTENSION: str = ".pcd"

# YYYYMMDD.HHMMSS followed by ".mmm" milliseconds
TIMESTAMP_FORMAT: str = "%Y%m%d.%H%M%S"
TIMESTAMP_LENGTH: int = 19
DEFAULT_CLEANUP_HOURS: int = 1

# Cloud attributes
KEEP_VIEWPORT: int = -1
DEFAULT_VIEWPORT: int = 0
DEFAULT_POINT_SIZE: int = 1
DEFAULT_OPACITY: float = 1.0
NO_COLOR: float = -1.0

# Features
RGB_FEATURE: str = "rgb"
UNLABELED: int = -1

# Picking
PICK_EPSILON: float = 1e-10
NOT_FOUND: int = -1
