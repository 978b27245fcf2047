from setuptools import setup, find_namespace_packages

setup(
    name="expiry-tracker",
    version="0.1.0",
    packages=find_namespace_packages(include=["expiry_tracker", "expiry_tracker.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.115",
        "uvicorn",
        "sqlalchemy>=2.0",
        "alembic",
        "psycopg2-binary",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        # passlib reads bcrypt.__about__, which bcrypt 5 removed
        "bcrypt>=4,<5",
        "python-multipart",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "email-validator",
        "celery",
        "firebase-admin",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
        "boto3",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
