from setuptools import setup, find_packages

setup(
    name="pydynvar",
    version="0.1.0",
    author="Bolding-Bruggeman ApS",
    author_email="jorn@bolding-bruggeman.com",
    license="GPL",
    packages=find_packages(include=["pydynvar*"]),
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "xarray",
        "cftime",
        "netCDF4",
        "pyyaml",
    ],
    extras_require={"test": ["pytest"]},
    zip_safe=False,
    entry_points={
        "console_scripts": [
            "pydynvar-run = pydynvar.run:run",
        ],
    },
)
