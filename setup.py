from __future__ import annotations

from setuptools import find_namespace_packages, setup

# The engine lives in top-level namespace packages (`core/`, `geometry/`,
# `runtime/`, `modules/`); `tissue_mesh/` only carries helper entry points.
PACKAGES = ["core", "geometry", "runtime", "modules", "tissue_mesh"]

setup(
    name="tissue-mesh",
    version="0.1.0",
    description="Polygonal tissue mesh engine with topological editing and mesh actors",
    python_requires=">=3.9",
    packages=find_namespace_packages(
        include=[name for pkg in PACKAGES for name in (pkg, f"{pkg}.*")]
    ),
    install_requires=[
        "numpy",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
