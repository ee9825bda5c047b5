"""Setup configuration for productivity_metrics"""

from setuptools import setup, find_packages

setup(
    name="github-productivity-metrics",
    version="0.1.0",
    description=(
        "CLI tool for GitHub repository productivity metrics: pull request cycle "
        "time, issue resolution time, DORA metrics, and project throughput."
    ),
    author="GitHub Productivity Metrics Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "github-productivity-metrics=productivity_metrics.main:main",
        ],
    },
)
