"""Defect issue workflow and bulletin publishing for openEuler."""

__version__ = "0.1.0"
