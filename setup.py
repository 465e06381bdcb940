"""Setup configuration for FilterGrid Data Viewer"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="filtergrid",
    version="1.0.0",
    author="FilterGrid",
    description="Column-filter indexing and query engine for large in-memory datasets, with an Excel-style PyQt6 grid",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: End Users/Desktop",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        "PyQt6>=6.6.1",
        "pandas>=2.1.4",
        "numpy>=1.26",
        "python-dateutil>=2.8.2",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-qt>=4.2.0",
            "black>=23.12.1",
            "flake8>=6.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "filtergrid=filtergrid.main:main",
        ],
    },
)
