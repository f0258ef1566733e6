from setuptools import setup, find_packages

setup(
    name="cluster_matrix",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "numba"
    ],
    extras_require={
        "test": [
            "pytest",
        ]
    },
    description="Edge-weight matrices, connected components and numeric tables for clustering",
    python_requires=">=3.8",
)
