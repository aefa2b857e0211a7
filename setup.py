"""Setup configuration for nearbytrains."""

from setuptools import setup, find_packages

with open("docs/README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="nearbytrains",
    version="0.1.0",
    author="Charles Jaffe",
    description="Real-time MTA subway arrivals and alerts for nearby stations",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/nearbytrains",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={"nearbytrains": ["data/*.json"]},
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.24.0",
        "pandas>=1.3.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "dev": [
            "pytest>=6.0",
            "gtfs-realtime-bindings>=0.2.9",
            "protobuf>=3.17.0",
            "black",
            "flake8",
        ],
    },
    entry_points={
        "console_scripts": ["nearbytrains=nearbytrains.cli:main"],
    },
)
