"""
Setup configuration for MedicFácil.

This file tells pip how to install the package and creates the 'medic' command.

To install for development (editable mode):
    pip install -e ".[test]"

This creates the 'medic' command that you can use from anywhere.
"""

from setuptools import setup, find_packages

setup(
    name="medicfacil",
    version="0.1.0",
    description="Medication reminders with sound, voice and vibration, dose history and family access",
    author="Your Name",
    python_requires=">=3.10",

    # find_packages() finds the medicfacil folder (tests are not installed)
    packages=find_packages(exclude=["tests", "tests.*"]),

    install_requires=[
        "click>=8.0.0",
        "tabulate>=0.9.0",
        "twilio>=8.0.0",
        "pandas>=2.0.0",
        "openpyxl>=3.1.0",
        "reportlab>=4.0.0",
    ],

    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },

    # This creates the 'medic' command
    # It says: when someone types 'medic', run the 'main' function from medicfacil.cli
    entry_points={
        "console_scripts": [
            "medic=medicfacil.cli:main",
        ],
    },
)
