"""
Setup configuration for ghostautomation package.
"""

from setuptools import setup, find_packages

setup(
    name="ghostautomation",
    version="0.1.0",
    description="TikTok affiliate content pipeline with compliance review and viral-to-leads conversion",
    packages=find_packages(include=["ghostautomation", "ghostautomation.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "supabase>=2.0",
        "logfire>=0.40",
        "tenacity>=8.2",
        "httpx>=0.25",
        "anthropic>=0.30",
        "click>=8.1",
        "fastapi>=0.110",
        "uvicorn>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.25",
        ],
    },
    entry_points={
        "console_scripts": [
            "ghost=ghostautomation.cli.main:cli",
        ],
    },
)
