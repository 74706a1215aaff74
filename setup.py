from setuptools import setup, find_packages

setup(
    name="taskmanagement",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "psycopg2-binary",
        "python-jose[cryptography]",
        "python-dotenv",
        "pydantic",
        "pydantic-settings",
        "websockets",
        "kombu",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
    ],
    entry_points={
        "console_scripts": [
            "taskmanagement-api=taskmanagement.main:main",
            "taskmanagement-scanner=taskmanagement.reminders.worker_process:main",
        ],
    },
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
