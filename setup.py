from setuptools import find_packages, setup


setup(
    name="empath",
    version="0.1.0",
    description="Record file accesses per Git repository and rank them by frecency.",
    packages=find_packages(include=["empath", "empath.*"]),
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "empath=empath.cli:main",
        ]
    },
)
