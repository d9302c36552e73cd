import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

version = {}
with open(r"acmecore/version.py") as fp:
    exec(fp.read(), version)

dependencies = [
    "acme>=2.0",
    "aiohttp>=3.8",
    "click>=8.0",
    "cryptography>=38.0",
    "josepy>=1.13",
    "multidict>=6.0",
    "pydantic>=2.0",
    "pydantic-settings>=2.0",
    "PyYAML>=6.0",
]

test_dependencies = [
    "pytest>=7.0",
    "pytest-asyncio>=0.23",
]

setuptools.setup(
    name="acmecore",
    version=version["__version__"],
    author="acmecore contributors",
    description="An asynchronous ACME client that registers accounts, obtains and revokes certificates",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    install_requires=dependencies,
    extras_require={"test": test_dependencies},
    entry_points={
        "console_scripts": [
            "acmecore=acmecore.main:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
)
