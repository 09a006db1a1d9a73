#!/usr/bin/env python3
"""
Setup script for the Body Scan Reconstruction Package
"""

from setuptools import setup, find_packages

setup(
    name="bodyscan",
    version="1.0.0",
    description="Front/back depth scan reconstruction into skeleton-driven body meshes",
    author="Thorn",
    packages=find_packages(include=["bodyscan", "bodyscan.*"]),
    package_data={"bodyscan": ["config/*.yaml"]},
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.19.0",
        "scipy>=1.5.0",
        "open3d>=0.15.0",
        "opencv-python>=4.5.0",
        "pyyaml>=5.4",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "bodyscan=bodyscan.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
