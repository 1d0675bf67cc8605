from setuptools import setup, find_packages

setup(
    name="member-search",
    version="0.1",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.12",
    install_requires=[
        "aiofiles",
        "click",
        "fastmcp",
        "pydantic>=2",
        "python-dotenv",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    url="",
    license="",
    description="Search IBM i source members with pfgrep",
    entry_points={
        "console_scripts": [
            "member-search=member_search.cli:main",
        ],
    },
)
