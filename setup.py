from setuptools import setup, find_packages

setup(
    name="dayboard-api",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"dayboard": ["plans.yaml", "db/seed/routines/*.json"]},
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy[asyncio]",
        "asyncpg",
        "pydantic",
        "pydantic-settings",
        "python-dotenv",
        "supabase",
        "stripe>=8",
        "pyyaml",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
            "aiosqlite",
        ],
    },
)
