from setuptools import setup, find_packages

setup(
    name="directory-import-planner",
    version="0.1.0",
    author="LSA Technology Services",
    author_email="lsats@umich.edu",
    description="Plans the import of spreadsheet rows into an LDAP directory as an ordered list of actions",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Systems Administration",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pandas>=1.3.0",
        "python-dotenv>=0.19.0",
        "ldap3>=2.9.0",
        "keyring>=23.0.0",
        "cachetools>=5.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "plan-import=scripts.plan_import:main",
        ],
    },
)
