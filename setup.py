from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="dutchbid",
    version="0.1.0",
    author="dutchbid developers",
    description="Client for a sealed-bid Dutch auction with FHE-encrypted bid quantities",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["dutchbid", "dutchbid.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.11",
    install_requires=[
        "web3>=6.15.0",
        "eth-account>=0.10.0",
        "httpx>=0.25.0",
        "pycryptodome>=3.19.0",
        "pydantic>=2.5.0",
        "click>=8.1.0",
        "python-dotenv>=1.0.0",
        "colorlog>=6.7.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "dutchbid=dutchbid.cli.main:cli",
        ],
    },
)
