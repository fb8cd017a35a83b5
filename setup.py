from setuptools import setup, find_packages
import pathlib

# Detect layout
use_src = pathlib.Path("src/neuropipe").exists()
pkg_args = {"package_dir": {"": "src"}, "packages": find_packages(where="src")} if use_src \
           else {"packages": find_packages(where=".")}

setup(
    name="neuro-pipe",
    version="0.1.0",
    description="Build, audit and persist EEG/MEG processing pipelines",
    python_requires=">=3.9",
    install_requires=[
        "typer>=0.9",
        "pydantic>=2",
        "PyYAML>=6",
        "jinja2>=3",
        "pandas>=1.5",
        "numpy>=1.23",
    ],
    extras_require={"tests": ["pytest>=7"]},
    include_package_data=True,
    package_data={"neuropipe": ["templates/*.j2"]},
    entry_points={"console_scripts": ["neuropipe=neuropipe.cli:app"]},
    **pkg_args
)
