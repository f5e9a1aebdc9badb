from setuptools import setup, find_packages

setup(
    name="cstor-node-mgmt",
    version="0.1.0",
    packages=find_packages(),
    install_requires=[
        "kubernetes>=24.2.0",
        "prometheus-client>=0.16.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cstor-pool-mgmt=cstor_mgmt.scripts.cli:pool_mgmt_main",
            "cstor-replica-mgmt=cstor_mgmt.scripts.cli:replica_mgmt_main",
            "cstor-volume-mgmt=cstor_mgmt.scripts.cli:volume_mgmt_main",
        ],
    },
    python_requires=">=3.8",
)
