"""
This file is used to install the package using pip.
"""

from setuptools import setup, find_packages

setup(
    name="corrvis",
    version="0.1.0",
    description="A direct cross-correlation visibility simulator",
    license="MIT",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "numpy",
        "numba",
        "astropy",
        "psutil",
        "ray",
        "threadpoolctl",
        "memray",
        "typer",
        "rich",
    ],
    extras_require={
        "gpu": ["cupy"],
        "dev": [
            "pytest",
            "pre-commit",
            "pytest-cov",
            "pytest-xdist",
        ],
    },
    entry_points={
        "console_scripts": ["corrvis=corrvis.cli:app"],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering",
        "Topic :: Scientific/Engineering :: Astronomy",
        "Topic :: Scientific/Engineering :: Physics",
    ],
)
