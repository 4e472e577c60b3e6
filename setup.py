from setuptools import setup, find_packages

setup(
    name="portfolio-rebalancer",
    version="1.0.0",
    author="Portfolio Rebalancer Team",
    description="Idempotent intake of portfolio rebalance requests into buy/sell transactions",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={
        "rebalance_engine": ["py.typed"],
        "rebalance_config": ["py.typed"],
    },
    install_requires=[
        "pydantic==2.11.7",
        "PyYAML==6.0.2",
        "redis==5.2.1",
        "fastapi==0.115.12",
        "uvicorn==0.34.3",
        "dependency-injector==4.48.1",
    ],
    extras_require={
        "test": [
            "pytest==8.3.5",
            "pytest-asyncio==0.26.0",
            "fakeredis==2.29.0",
            "httpx==0.28.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "rebalance-consumer=rebalance_service.main:run",
            "rebalance-api=rebalance_service.api.main:run",
        ],
    },
    python_requires=">=3.11",
)
