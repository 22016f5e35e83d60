"""
Setup script for the CLIP Auto-Tagger package.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

# Read requirements
requirements_path = Path(__file__).parent / "requirements.txt"
requirements = []
if requirements_path.exists():
    requirements = [
        line.strip()
        for line in requirements_path.read_text().splitlines()
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="clip-auto-tagger",
    version="1.0.0",
    description="Zero-shot image tagging with a locally cached CLIP ONNX model",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="CLIP Auto-Tagger Team",
    packages=find_packages(include=["clip_tagger", "clip_tagger.*"]),
    package_data={"clip_tagger": ["assets/*.txt"]},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Graphics",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0.0",
            "isort>=5.12.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "clip-tagger=clip_tagger.main:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
    keywords="clip, ai, tagging, zero-shot, onnx, image-recognition, machine-learning",
)
