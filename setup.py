#!/usr/bin/env python3
"""
Setup configuration for spot-browser
Browse a Spotify library from the terminal: paged container loading,
thumbnail caching, OAuth login and token refresh
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "spotipy>=2.23.0",
    "requests>=2.31.0",
    "Pillow>=10.0.0",
    "pyyaml>=6.0.1",
    "python-dotenv>=1.0.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "rich>=13.7.0",
    "tqdm>=4.66.1",
]

setup(
    name="spot-browser",
    version="0.1.0",
    author="spot-browser contributors",
    description="Browse your Spotify library from the terminal",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["spot_browser", "spot_browser.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "black>=23.11.0",
            "flake8>=6.1.0",
            "mypy>=1.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "spot-browser=spot_browser.cli:main",
        ],
    },
    keywords="spotify music library browser cli oauth",
)
