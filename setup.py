"""
Setup script for the Feature Tracking Front-End.
"""

from setuptools import setup, find_packages
import os


def read_readme():
    """Read README file for long description."""
    if os.path.exists('README.md'):
        with open('README.md', 'r', encoding='utf-8') as f:
            return f.read()
    return "Feature tracking front-end: keypoint detection, description and matching"


# Core requirements (always installed)
install_requires = [
    # contrib build provides cv2.xfeatures2d (BRIEF, FREAK)
    'opencv-contrib-python>=4.5.0,<5',
    'numpy>=1.19.0',
    'matplotlib>=3.3.0',
    'pandas>=1.2.0',
]

extras_require = {
    'dev': [
        'pytest>=6.0.0',
        'pytest-cov>=2.12.0',
    ],
}

setup(
    name="feature-tracking",
    version="1.0.0",
    author="Feature Tracking Team",
    description="Keypoint detection, description and frame-to-frame matching for image sequences",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=['FeatureTracking', 'FeatureTracking.*']),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Image Processing",
    ],
    python_requires=">=3.8",
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        'console_scripts': [
            'feature-tracking=FeatureTracking.cli:main',
        ],
    },
    keywords=[
        "computer vision",
        "feature tracking",
        "keypoint detection",
        "descriptor matching",
        "SIFT",
        "ORB",
        "BRISK",
        "opencv"
    ],
)
