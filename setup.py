# setup.py
"""Setup script for phasher, the frame fingerprinting pipeline."""

import os

from setuptools import setup, find_packages

setup(
    name="phasher",
    version="1.0.0",
    description="Fingerprint numbered image frames and store or query them in SQLite for near-duplicate detection",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="phasher developers",
    packages=find_packages(),
    python_requires=">=3.8",
    install_requires=[
        "Pillow>=8.0.0",
        "imagehash>=4.0.0",
        "tqdm>=4.50.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            "pytest-cov>=2.10.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "phasher=phasher.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Multimedia :: Graphics",
        "Topic :: Database",
    ],
)
