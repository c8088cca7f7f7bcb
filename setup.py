from setuptools import find_packages, setup

with open("dahuanvr/version.py") as f:
    exec(f.read())

setup(
    name="python-dahuanvr",
    version=__version__,  # type: ignore # noqa: F821
    description="Python API for Dahua network video recorders",
    author="",
    author_email="",
    license="GPLv3",
    packages=find_packages(include=["dahuanvr", "dahuanvr.*"]),
    install_requires=[
        "aiohttp>=3",
        "asyncclick>=8.1.7",
        "cryptography>=1.9",
        "mashumaro>=3.14",
        "yarl",
    ],
    extras_require={
        "speedups": ["orjson>=3.9.1"],
        "shell": ["rich"],
        "test": ["pytest", "pytest-asyncio", "pytest-mock"],
    },
    python_requires=">=3.11",
    entry_points={"console_scripts": ["dahuanvr=dahuanvr.cli.main:cli"]},
    zip_safe=False,
)
