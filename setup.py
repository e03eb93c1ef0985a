#!/usr/bin/env python3
"""
Setup script for TSR Motion Planning Package
"""

from setuptools import setup, find_packages

setup(
    name="tsr-motion-planning",
    version="2.1.0",
    description="TSR-based motion planning cascade for serial manipulators",
    author="Thorn",
    packages=find_packages(exclude=["*.tests", "*.tests.*", "*.examples", "*.examples.*"]),
    python_requires=">=3.7",
    install_requires=[
        "numpy>=1.19.0",
        "scipy>=1.5.0",
        "PyYAML>=5.3",
    ],
    extras_require={
        "test": ["pytest>=6.0"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.7",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
