from setuptools import setup, find_packages

setup(
    name="ndlineage",
    version="0.1.0",
    description="NDArray binding over a handle-based tensor engine with explicit lifetimes and lineage tracking",
    author="ndlineage developers",
    packages=find_packages(include=["ndlineage", "ndlineage.*"]),
    install_requires=[
        "torch>=2.0.0",
        "numpy>=1.20.0",
        "scipy>=1.7.0",
    ],
    extras_require={
        "dev": ["pytest>=7.4.0"],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
)
