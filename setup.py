from setuptools import setup, find_packages

setup(
    name="pyoptim",
    version="0.1.0",
    packages=find_packages(include=["pyoptim", "pyoptim.*"]),
    install_requires=["numpy", "scipy", "matplotlib"],
    extras_require={"test": ["pytest"]},
    author="Your Name",
    description="Line search, quasi-Newton, Newton and augmented Lagrangian solvers for smooth optimization",
    license="MIT",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License"
    ]
)
