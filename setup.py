#!/usr/bin/env python3
"""
Setup script for the MineChat CLI client
"""

from setuptools import setup, find_packages

setup(
    name="minechat-client",
    version="0.1.1",
    description="Command-line client for MineChat, chat with players on a Minecraft server",
    packages=find_packages(include=["minechat", "minechat.*", "shared", "shared.*"]),
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
    python_requires=">=3.9",
    entry_points={
        'console_scripts': [
            'minechat=minechat.cli:main',
        ],
    },
)
