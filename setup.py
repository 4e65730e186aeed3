#!/usr/bin/env python3
"""
Setup script for Quarry.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="quarry",
    version="0.1.0",
    description="SQL query builder, statement layer and active-record ORM for SQLite, MySQL and PostgreSQL",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Quarry Contributors",
    packages=find_packages(include=["quarry", "quarry.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "python-dotenv>=1.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "mysql": [
            "pymysql>=1.1.0",
        ],
        "postgresql": [
            "psycopg[binary]>=3.1.0",
        ],
        "redis": [
            "redis>=5.0.0",
        ],
        "msgpack": [
            "msgpack>=1.0.0",
        ],
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Database :: Front-Ends",
        "Topic :: Software Development :: Libraries",
    ],
    keywords="sql query builder orm active record sqlite mysql postgresql",
)
