"""vSphere host documentation: inventory, hardware, networking, storage and compliance reports."""

__version__ = "1.0.0"
