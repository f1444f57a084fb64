from setuptools import setup, find_packages

setup(
    name="statespace_sim",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "sympy",
        "scipy",
        "networkx",
        "pydantic>=2",
        "matplotlib"
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
