"""Setup configuration for the modfeed Discord bot."""

from setuptools import setup, find_packages

setup(
    name="modfeed",
    version="0.1.0",
    description="A Discord bot announcing new mods and releases from the Factorio mod portal",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiohttp>=3.9",
        "aiosqlite>=0.20",
        "requests>=2.31",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
        "tenacity>=8.2",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "modfeed=modfeed.main:main",
        ],
    },
)
