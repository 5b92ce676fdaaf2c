from setuptools import setup, find_packages


setup(
    name="ztr",
    version="0.1",
    packages=find_packages(include=["ztr", "ztr.*"]),
    description="A configuration-driven directory archiver with gitignore-style rules (tar, tar.gz, zip).",
    python_requires=">=3.11",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "ztr=ztr.cli:main",
        ]
    },
)
