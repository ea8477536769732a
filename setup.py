"""Setup configuration for the ASC Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="ascbot",
    version="1.0.0",
    description="A prefix-command Discord bot for moderation, guild setup and engagement",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiohttp>=3.9",
        "aiosqlite>=0.20",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "ascbot=ascbot.main:main",
        ],
    },
)
