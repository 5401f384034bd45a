"""
Setup script for bitlearn.

bitlearn generates bite-sized learning topics (summary, key points and a
quiz) with an LLM, versions them against a learner's earlier topics, and
scores every topic with three independent LLM judges before deciding
whether it is published.

The 'bitlearn' command is the primary entry point.
"""

from setuptools import find_packages, setup

setup(
    name="bitlearn",
    version="1.0.0",
    description="Generate, version and verify bite-sized learning topics with LLM judges",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="bitlearn",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy[asyncio]>=2.0.0",
        "psycopg2-binary>=2.9.0",
        "asyncpg>=0.29.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "sqlite": [
            "aiosqlite>=0.19.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "aiosqlite>=0.19.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bitlearn=bitlearn.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="learning llm quiz education verification",
)
