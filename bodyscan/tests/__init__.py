"""
Test utilities and unit tests.

Synthetic scan generation for exercising the reconstruction pipeline.
"""

from .create_test_data import create_scan_pair, create_scan_store, create_test_dataset

__all__ = ["create_scan_pair", "create_scan_store", "create_test_dataset"]
