from setuptools import find_packages, setup

setup(
    name="tingwu-task-orchestration",
    version="1.0.0",
    packages=find_packages(include=["src", "src.*"]),
    package_dir={"src": "src"},
    install_requires=[line for line in open("requirements-core.txt").read().splitlines() if line],
    extras_require={
        "tingwu": [
            "alibabacloud-tingwu20230930>=2.0",
            "alibabacloud-tea-openapi>=0.3",
            "alibabacloud-tea-util>=0.3",
        ],
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "tingwu-tasks=src.cli:main",
        ],
    },
)
