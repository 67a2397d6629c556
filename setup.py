from setuptools import find_packages, setup

setup(
    name="logwatcher",
    version="0.1.0",
    description="Email alerts when a watched log file changes too often",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "click",
        "toml",
        "pyyaml",
        "python-daemon",
        "rich",
        "psutil",
        "inotify",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "logwatcher=logwatcher.cli:main"
        ]
    },
)
