"""
Setup script for cosmic_mc package.

Installation:
    pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name="cosmic_mc",
    version="0.1.0",
    description="Cosmic-Ray Propagation Monte Carlo with Composable Sources and Observers",
    author="William Comaskey",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.10",
        "matplotlib>=3.7",
        "numba>=0.58",
        "h5py>=3.8",
        "pyyaml>=6.0",
        "tqdm>=4.65",
    ],
    extras_require={
        "test": ["pytest>=7.3"],
        "dev": ["pytest>=7.3", "black>=23.0", "mypy>=1.3", "ipython>=8.12"],
        "all": ["pytest>=7.3"],
    },
)
