"""Setup configuration for data_migration package."""
from setuptools import setup, find_packages

setup(
    name="data_migration",
    version="0.1.0",
    author="Your Name",
    description="Supervised one-off data migrations with transaction, progress and commit confirmation",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pymysql>=1.0.0",
        "psycopg2-binary>=2.9.0",
        "pandas>=1.3.0",
        "tqdm>=4.60.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "data-migration=data_migration_pkg.runner:main",
        ],
    },
)
