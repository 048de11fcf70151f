"""
Setup script for Replication Orchestrator

Bulk replication of many databases between CouchDB-compatible clusters,
driven through the store's own _replicator database with bounded concurrency
and aggregated progress reporting.
"""

from setuptools import setup, find_packages
import pathlib

here = pathlib.Path(__file__).parent.resolve()

# Get the long description from the README file
try:
    long_description = (here / "README.md").read_text(encoding="utf-8")
except FileNotFoundError:
    long_description = """
    Replication Orchestrator

    Replicates one, several or all databases from a source CouchDB/Cloudant
    cluster to a target cluster using the store's built-in replicator, with
    bounded concurrency, live (continuous) mode and optional _security copy.
    """

setup(
    name="replication-orchestrator",
    version="1.0.0",
    description="Bulk database replication orchestrator for CouchDB-compatible clusters",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Replication Orchestrator Team",
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: System :: Systems Administration",
    ],
    keywords="couchdb, cloudant, replication, migration, async",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    python_requires=">=3.9",
    install_requires=[
        # Core dependencies
        "click>=8.0.0",

        # Store client
        "httpx>=0.24.0",

        # Configuration
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=1.0.0",
            "coverage>=6.0.0",
            "flake8>=5.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "couchreplicate=replication_orchestrator.cli.main:main",
            "replication-orchestrator=replication_orchestrator.cli.main:main",
        ],
    },
)
