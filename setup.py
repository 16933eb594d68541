from setuptools import setup, find_namespace_packages

setup(
    name="dohproxy",
    version="0.1.0",
    packages=find_namespace_packages(include=["dohproxy", "dohproxy.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "httpx>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.7",
        "redis>=5.0",
        "uvicorn>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
