"""Setup configuration for the AutoMod Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="automod",
    version="0.1.0",
    description="A rule-based auto-moderation engine for Discord with optional AI review",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiosqlite>=0.20",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "openai>=1.40",
        "jsonschema>=4.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "automod=automod.main:main",
        ],
    },
)
