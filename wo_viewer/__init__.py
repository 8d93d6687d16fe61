"""wo-viewer: normalize, filter and count maintenance work-order exports."""

__version__ = "0.3.0"
