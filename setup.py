"""Setup configuration for Juice Production Planner."""

from setuptools import setup, find_packages

setup(
    name="juiceplan",
    version="0.1.0",
    description=(
        "Juice production planning and execution engine: raw-material "
        "requirements, FIFO inventory consumption and quality tracking"
    ),
    packages=find_packages(include=["juiceplan", "juiceplan.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Manufacturing",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    install_requires=[
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
)
