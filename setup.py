#!/usr/bin/env python3

from setuptools import setup
import os

# Read requirements from file
def read_requirements():
    with open("requirements.txt", "r") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]

# Read long description from README
def read_readme():
    if os.path.exists("README.md"):
        with open("README.md", "r", encoding="utf-8") as f:
            return f.read()
    return ""

setup(
    name="weather-mcp-server",
    version="1.0.0",
    description="MCP server for National Weather Service alerts, forecasts and weather prompt templates",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    py_modules=["weather_mcp_server"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Atmospheric Science",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=read_requirements(),
    extras_require={
        "test": ["pytest>=7.0", "pytest-asyncio>=0.23"],
    },
    entry_points={
        "console_scripts": [
            "weather-mcp=weather_mcp_server:main",
        ],
    },
    keywords=[
        "mcp", "model-context-protocol", "weather", "forecast",
        "alerts", "nws", "noaa", "prompts",
    ],
)
