from setuptools import setup, find_namespace_packages

setup(
    name="query_assistant",
    version="0.1.0",
    packages=find_namespace_packages(include=["query_assistant", "query_assistant.*"]),
    package_data={"query_assistant.services": ["*.yaml"]},
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy[asyncio]>=2.0",
        "aioodbc",
        "httpx",
        "openai",
        "anthropic",
        "mistralai>=1.0,<2",
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
        "pyyaml"
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "aiosqlite"
        ]
    },
)
