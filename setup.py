#!/usr/bin/env python3
"""
Setup script for the Dock Your Boat remote control client
"""

from setuptools import setup, find_packages

setup(
    name="dybremote",
    version="0.1.0",
    description="Remote control client for the Dock Your Boat TCP protocol",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.1.7",
        "typer>=0.12.3",
        "rich>=13.9.2",
        "aioconsole>=0.8.1",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.2",
            "pytest-asyncio>=1.2.0",
        ],
    },
    python_requires=">=3.8",
    entry_points={
        'console_scripts': [
            'dyb-client=dybclient.cli:main',
        ],
    },
)
