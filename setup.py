from setuptools import setup, find_packages

setup(
    name="neuralhash",
    version="0.1.0",
    description="Hash-anchored verifiable credentials — issue, verify and selectively disclose",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pynacl>=1.5.0",
        "httpx>=0.24.0",
        "pydantic>=2.0",
        "fastapi>=0.100.0",
        "python-multipart>=0.0.6",
        "slowapi>=0.1.9",
        "python-json-logger>=3.1.0",
        "uvicorn>=0.22.0",
        "web3>=7.0.0",
        "eth-account>=0.13.0",
    ],
    extras_require={"dev": ["pytest>=7.0", "pytest-asyncio>=0.21", "respx>=0.20"]},
    entry_points={"console_scripts": ["neuralhash=neuralhash.cli:main"]},
    python_requires=">=3.9",
    license="CC0-1.0",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Libraries",
        "License :: CC0 1.0 Universal (CC0 1.0) Public Domain Dedication",
        "Programming Language :: Python :: 3",
    ],
    keywords="verifiable credentials ssi ipfs ethereum keccak selective-disclosure",
)
