#! python
"""Setup phrp."""

from setuptools import setup


def get_version(path):
    """Get __version__ from Python file."""
    with open(path, "rt") as f:
        for line in f:
            if line.startswith("__version__ = "):
                return line.strip().split(" = ")[1].strip("\"'")


def get_readme():
    with open("README.md", "r") as fh:
        readme = fh.read()
    return readme


setup(
    name="phrp",
    version=get_version("phrp/__init__.py"),
    license="apache-2.0",
    description="PHRP: Convert peptide search tool results to synopsis files with annotated modifications.",
    long_description=get_readme(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Development Status :: 4 - Beta",
    ],
    keywords=[
        "PHRP",
        "MODa",
        "TopPIC",
        "Proteomics",
        "peptide",
        "post-translational modification",
        "false discovery rate",
    ],
    packages=["phrp", "phrp.package_data"],
    include_package_data=True,
    package_data={"phrp.package_data": ["*.json", "*.txt"]},
    python_requires=">=3.7",
    install_requires=[
        "numpy>=1.16.0",
        "pandas>=1.3.0",
        "pyteomics>=4.1.0,<5",
        "cascade-config>=0.3.0,<2",
        "rich>=10",
        "tomli>=2; python_version < '3.11'",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    test_suite="tests",
)
