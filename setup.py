from setuptools import setup, find_packages

setup(
    name="circuitnet",
    version="0.1.0",
    description="Circuit graphs, net resolution and Qucs dataset binding",
    author="Your Name",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "networkx",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
