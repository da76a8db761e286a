"""
Setup script for the AI Media Studio back-end
"""
from setuptools import setup, find_packages

setup(
    name="ai-media-studio",
    version="0.1.0",
    description="Back-end for AI image, video and speech generation with usage credits and offline payments",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10,<3.14",
    install_requires=[
        "fastapi>=0.100",
        "uvicorn[standard]",
        "sqlalchemy>=2.0",
        "alembic",
        "psycopg2-binary",
        "pydantic[email]",
        "python-jose[cryptography]",
        "bcrypt",
        "httpx",
        "python-dotenv",
        "python-multipart",
    ],
    extras_require={
        "s3": ["boto3"],
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "media-studio=media_studio.api_server:main",
        ],
    },
)
