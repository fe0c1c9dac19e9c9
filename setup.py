from setuptools import setup, find_packages

# Read the contents of your README file
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read the contents of your requirements.txt file
with open("requirements.txt", "r", encoding="utf-8") as fh:
    install_requires = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="PhishScope",
    version="0.1.0",
    description="Phishing and fraud risk estimation for URLs from six concurrent security probes.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["phishscope"],
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Security",
        "Topic :: Internet :: WWW/HTTP",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Intended Audience :: Information Technology",
    ],
    python_requires='>=3.10',
    install_requires=install_requires,
    extras_require={
        "test": ["pytest>=8.0"],
    },
    entry_points={
        'console_scripts': [
            'phishscope=phishscope:main',
        ],
    },
    include_package_data=True,
    package_data={
        'reports': ['templates/*.html'],
    },
)
