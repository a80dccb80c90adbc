"""
Setup script for Sensor Metrics - per-user metric series storage and query engine.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="sensor-metrics",
    version="1.0.0",
    description="Per-user metric time series stored in Redis with authorized range queries",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Sensor Metrics Team",
    author_email="dev@sensormetrics.example.com",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        # Key-value store driver
        "redis>=5.0.1",

        # Data validation
        "pydantic>=2.5.0",

        # HTTP surface
        "fastapi>=0.109.0",
        "uvicorn>=0.27.0",

        # Monitoring and observability
        "prometheus-client>=0.19.0",

        # Utilities
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.26.0",
            "black>=23.12.0",
            "mypy>=1.7.0",
            "ruff>=0.1.8",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database :: Front-Ends",
        "Topic :: System :: Monitoring",
    ],
    include_package_data=True,
    zip_safe=False,
)
