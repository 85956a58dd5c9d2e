from setuptools import setup, find_packages

setup(
    name="backfolio",
    version="0.1.0",
    author="Thomas Lee",
    description="Daily backtesting core for crypto and DeFi portfolio allocations",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas", "numpy", "matplotlib", "tqdm", "pydantic>=2"
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
