# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="plugpack",
    version="1.4.0",
    description="Compile, validate, bundle and package Python plugins for an app host",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["plugpack", "plugpack.*"]),
    install_requires=[
        "requests",  # Remote permission registry
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'plugpack=plugpack.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
