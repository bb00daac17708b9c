#!/usr/bin/env python3

from setuptools import find_namespace_packages, setup


setup(
    name="iotc-transform-adapter",
    version="1.0.0",
    description="Configurable HTTP adapter forwarding jq-transformed device messages to the IoT Central Device Bridge",
    license="MIT",
    python_requires=">=3.9",
    packages=find_namespace_packages(include=["iotc.*"]),
    install_requires=[
        "fastapi>=0.100",
        "uvicorn>=0.22",
        "pydantic>=2.0",
        "httpx>=0.24",
        "jq>=1.6",
        "tenacity>=8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "iotc-transform-adapter = iotc.transform_adapter.cli.main:main",
        ],
    },
)
