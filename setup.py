from setuptools import setup, find_packages
import pathlib

# Detect layout
use_src = pathlib.Path("src/csvdesc").exists()
pkg_args = {"package_dir": {"": "src"}, "packages": find_packages(where="src")} if use_src \
           else {"packages": find_packages(where=".")}

setup(
    name="csv-descriptor",
    version="0.1.0",
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "PyYAML",
        "typer",
        "pandas",
        "pyarrow",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["csvdesc=csvdesc.cli:app"],
    },
    **pkg_args
)
