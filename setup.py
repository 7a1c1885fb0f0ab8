#!/usr/bin/env python3
"""Setup script for reskin-tools package."""

from setuptools import setup, find_packages

setup(
    name="reskin-tools",
    version="0.1.0",
    description="Deck re-theming toolkit: themed card text, generated art and composited frames",
    author="Reskin Project",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "click>=8.0.0",
        "Pillow>=10.1.0",
        "PyYAML>=6.0",
        "google-genai>=1.33.0",
        "requests>=2.28.0",
        "python-dotenv>=1.0.0",
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "reskin=reskin.cli:cli",
        ],
    },
    python_requires=">=3.10",
)
