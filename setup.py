"""Setup file for github-client package."""

from setuptools import setup, find_packages

setup(
    name="github-client",
    version="0.1.0",
    description="Typed GitHub REST API client with rate limit handling, retries and lazy pagination",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "requests",
        "urllib3",
        "python-dotenv"
    ],
    extras_require={
        "dev": [
            "pytest",
            "black",
            "flake8",
            "mypy"
        ]
    },
    entry_points={
        "console_scripts": [
            "github-client=github_client.main:main"
        ]
    }
)
