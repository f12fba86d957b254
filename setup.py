from setuptools import setup, find_packages

setup(
    name="assetminder",
    version="0.1.0",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "alembic", "alembic.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy>=2.0",
        "alembic",
        "psycopg2-binary",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "email-validator",
        "celery",
        "kombu",
        "firebase-admin",
        "twilio",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
