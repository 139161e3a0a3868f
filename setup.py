"""
Setup script for learning-analytics.

Learning Analytics is the calculation core behind learning dashboards:

1. Mastery scoring - EMA-based competence per topic with inactivity decay
2. Retention - forgetting-curve modelling and review scheduling
3. Streaks - consecutive-day tracking with freeze days and a grace period
4. Recommendations - rule-based, prioritized study suggestions

The 'learning-analytics' command runs the engines over JSON files.
"""

from setuptools import find_packages, setup

setup(
    name="learning-analytics",
    version="0.1.0",
    description="Stateless mastery, retention, streak and recommendation engines for learning apps",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "learning-analytics=learning_analytics.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning analytics mastery spaced-repetition streaks education",
)
