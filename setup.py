#!/usr/bin/env python3
"""
Setup configuration for getlrc
Fetch synchronized lyrics from LRCLIB for a local music library
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "mutagen>=1.47.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "rich>=13.7.0",
    "pyyaml>=6.0.1",
    "requests>=2.31.0",
    "rapidfuzz>=3.5.0",
    "tqdm>=4.66.1",
    "appdirs>=1.4.4",
]

setup(
    name="getlrc",
    version="0.3.0",
    author="getlrc contributors",
    description="Resumable, rate-limited synced lyrics downloader for local music libraries",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["getlrc", "getlrc.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
        ],
    },
    entry_points={
        "console_scripts": [
            "getlrc=getlrc.cli:main",
        ],
    },
    keywords="lyrics lrc lrclib synced music cli",
)
